# Default parameters for colour inference; override through the CLI or constructor arguments

# name-distribution smoothing
# P(subtoken | cluster) = (count + alpha * prior) / (size + alpha); alpha = 0 turns smoothing off
DIRICHLET_ALPHA = 10
DISTANCE_DISCOUNT = 0.9 # ancestor at depth d contributes its subtokens with weight discount^d
BASE_TOLERANCE = 1e-3 # fraction of the global distribution seeded into every prior (avoids zero mass)

# search budget
MAX_ITERATIONS = 2500
TIMEOUT_MINUTES = 2 * 24 * 60

SHUFFLE_PROBABILITY = 0.1 # chance per iteration of shuffling the cluster order (helps the cache)

CACHE_CAPACITY = 50000 # number of speculative VI gains kept in the LRU cache

N_WORKERS = None # thread pool size for scoring candidates (None -> executor default)

# log level between INFO and WARNING used for run summaries
IMPORTANT = 25
