import pytest

from refinym.data_processing import (SPLITTERS, get_splitter, load_relations, split_bigrams, split_chars,
                                     split_subtoken_bigrams, split_subtoken_trigrams, split_subtokens,
                                     split_trigrams_and_subtokens)


class TestSubtokenSplitting:

    @pytest.mark.parametrize("name, expected", [
        ("someSimpleTest1", ("some", "simple", "test", "1")),
        ("SOME_WEIRD_NAME", ("some", "weird", "name")),
        ("ThisASTIsBlue", ("this", "ast", "is", "blue")),
        ("str0", ("str", "0")),
        ("", ()),
        ("_private", ("private",)),
        ("config.maxRetries", ("config", "max", "retries")),
        ("HTTPServer2Port", ("http", "server", "2", "port")),
        ("x", ("x",)),
    ])
    def test_split_subtokens(self, name, expected):
        assert split_subtokens(name) == expected

    def test_chars_and_bigrams(self):
        assert split_chars("aB") == ("a", "b")
        assert split_bigrams("Name") == ("na", "am", "me")
        assert split_bigrams("a") == ()
        assert split_bigrams("") == ()

    def test_subtoken_ngrams(self):
        assert split_subtoken_bigrams("fooBar") == ("fo", "oo", "ba", "ar")
        assert split_subtoken_trigrams("userId") == ("use", "ser", "id")
        assert split_trigrams_and_subtokens("userId") == ("user", "id", "use", "ser", "id")

    def test_lookup_by_name(self):
        assert get_splitter("subtoken") is split_subtokens
        assert set(SPLITTERS) >= {"subtoken", "char", "bigram", "subtoken_bigram",
                                  "subtoken_trigram", "trigram+subtoken"}
        with pytest.raises(ValueError, match="Unknown splitter"):
            get_splitter("words")


class TestLoadRelations:

    def test_load(self, tmp_path):
        fp = tmp_path / "edges.csv"
        fp.write_text(
            "source_id,source_name,sink_id,sink_name\n"
            "1,userName,2,name\n"
            "1,userName,3,displayName\n"
            "2,name,3,displayName\n"
            "4,,5,path\n"
        )
        relations, names = load_relations(fp)
        assert relations == {"1": {"2", "3"}, "2": {"3"}, "4": {"5"}}
        assert names == {"1": "userName", "2": "name", "3": "displayName", "4": "", "5": "path"}

    def test_later_rows_fill_missing_names(self, tmp_path):
        fp = tmp_path / "edges.csv"
        fp.write_text(
            "source_id,source_name,sink_id,sink_name\n"
            "a,,b,bName\n"
            "c,cName,a,aName\n"
        )
        _, names = load_relations(fp)
        assert names["a"] == "aName"

    def test_missing_columns(self, tmp_path):
        fp = tmp_path / "edges.csv"
        fp.write_text("source_id,sink_id\n1,2\n")
        with pytest.raises(ValueError, match="missing required columns"):
            load_relations(fp)

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_relations(tmp_path / "nope.csv")
