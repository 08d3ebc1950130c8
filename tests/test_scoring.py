from concurrent.futures import ThreadPoolExecutor

import pytest

from refinym.coloring import Coloring
from refinym.information import SubtokenDistributionModel
from refinym.operators import split_on
from refinym.scoring import ModificationCache, speculative_gain


class TestModificationCache:

    def test_capacity_must_be_positive(self):
        with pytest.raises(ValueError):
            ModificationCache(0)

    def test_repeated_get_returns_same_value(self):
        cache = ModificationCache(4)
        cache.put("a", 1.5)
        assert cache.get("a") == 1.5
        assert cache.get("a") == 1.5
        assert len(cache) == 1
        assert cache.hit_rate() == 1.0

    def test_evicts_least_recently_used(self):
        cache = ModificationCache(2)
        cache.put("a", 1)
        cache.put("b", 2)
        cache.get("a")      # b is now the oldest
        cache.put("c", 3)
        assert "a" in cache
        assert "b" not in cache
        assert "c" in cache
        assert len(cache) == 2

    def test_put_existing_key_refreshes(self):
        cache = ModificationCache(2)
        cache.put("a", 1)
        cache.put("b", 2)
        cache.put("a", 10)
        cache.put("c", 3)
        assert cache.get("a") == 10
        assert "b" not in cache

    def test_hit_rate_resets_on_read(self):
        cache = ModificationCache(4)
        cache.put("a", 1)
        cache.get("a")
        assert cache.get("missing", default=-1) == -1
        assert cache.hit_rate() == 0.5
        assert cache.hit_rate() == 0.0

    def test_get_or_compute_only_computes_on_miss(self):
        cache = ModificationCache(4)
        calls = []

        def compute():
            calls.append(1)
            return 42.0

        assert cache.get_or_compute("k", compute) == 42.0
        assert cache.get_or_compute("k", compute) == 42.0
        assert len(calls) == 1
        assert cache.hit_rate() == 0.5

    def test_concurrent_access(self):
        cache = ModificationCache(50)
        keys = [i % 80 for i in range(2000)]
        with ThreadPoolExecutor(max_workers=8) as executor:
            results = list(executor.map(lambda k: cache.get_or_compute(k, lambda: k * 2), keys))
        assert results == [k * 2 for k in keys]
        assert len(cache) == 50

    def test_clear(self):
        cache = ModificationCache(4)
        cache.put("a", 1)
        cache.clear()
        assert len(cache) == 0
        assert cache.hit_rate() == 0.0


class TestSpeculativeGain:

    def test_good_split_has_positive_gain(self, vee_one_token):
        graph, node_map = vee_one_token
        model = SubtokenDistributionModel(graph, dirichlet_alpha=0)
        model.cache_global_information()
        coloring = Coloring.from_components(graph)
        cluster, parents = coloring.clusters[0], coloring.cluster_parents[0]

        good = split_on(graph, cluster, parents, node_map["n1"])
        bad = split_on(graph, cluster, parents, node_map["n2"])
        total = model.num_effective_nodes(graph.all_nodes)
        assert speculative_gain(good, model, total) > 0
        assert speculative_gain(bad, model, total) < speculative_gain(good, model, total)

    def test_gain_is_cached_by_before_clusters(self, vee_one_token):
        graph, node_map = vee_one_token
        model = SubtokenDistributionModel(graph, dirichlet_alpha=0)
        model.cache_global_information()
        coloring = Coloring.from_components(graph)
        split = split_on(graph, coloring.clusters[0], coloring.cluster_parents[0], node_map["b1"])

        cache = ModificationCache(10)
        first = speculative_gain(split, model, 7, cache)
        assert split.cache_key() in cache
        assert speculative_gain(split, model, 7, cache) == first
        assert cache.hit_rate() == 0.5
