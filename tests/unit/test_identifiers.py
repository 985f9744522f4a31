"""Unit tests for external identifier extraction."""

from timelinemeta.metadata.identifiers import extract_identifiers, normalize_imdb_id
from timelinemeta.models.media import ExternalIdentifierSet


class TestNormalizeImdbId:
    """Test IMDb id normalization."""

    def test_bare_id_kept(self):
        """Should keep a canonical id unchanged."""
        assert normalize_imdb_id("tt1160419") == "tt1160419"

    def test_id_taken_from_url(self):
        """Should pull the id out of an imdb.com title URL."""
        assert normalize_imdb_id("https://www.imdb.com/title/tt1160419/") == "tt1160419"

    def test_numeric_value_rejected(self):
        """Should return None when no tt id is present."""
        assert normalize_imdb_id("1160419") is None


class TestExtractIdentifiers:
    """Test ExternalLinks parsing."""

    def test_json_object(self):
        """Should read ids from a JSON object."""
        ids = extract_identifiers('{"imdb": "tt1160419", "tmdb": 438631, "trakt": "dune-2021"}')

        assert ids.imdb == "tt1160419"
        assert ids.tmdb == "438631"
        assert ids.trakt == "dune-2021"
        assert ids.tvdb is None

    def test_json_imdb_url_normalized(self):
        """Should normalize an IMDb URL stored under the imdb key."""
        ids = extract_identifiers('{"imdb": "https://www.imdb.com/title/tt0944947/"}')

        assert ids.imdb == "tt0944947"

    def test_json_ignores_unknown_and_empty_keys(self):
        """Should drop unknown keys, empty strings and nested values."""
        ids = extract_identifiers('{"imdb": "", "tmdb": {"id": 1}, "letterboxd": "dune"}')

        assert ids == ExternalIdentifierSet()
        assert not ids

    def test_free_text_urls(self):
        """Should extract ids from provider URLs in free text."""
        text = (
            "IMDb: https://www.imdb.com/title/tt0944947/\n"
            "TMDB: https://www.themoviedb.org/tv/1399-game-of-thrones\n"
            "Trakt: https://trakt.tv/shows/game-of-thrones\n"
            "TVDB: https://thetvdb.com/series/game-of-thrones"
        )

        ids = extract_identifiers(text)

        assert ids.imdb == "tt0944947"
        assert ids.tmdb == "1399"
        assert ids.trakt == "game-of-thrones"
        assert ids.tvdb == "game-of-thrones"

    def test_movie_urls(self):
        """Should match movie URLs as well as show URLs."""
        ids = extract_identifiers("https://www.themoviedb.org/movie/438631 https://trakt.tv/movies/dune-2021")

        assert ids.tmdb == "438631"
        assert ids.trakt == "dune-2021"

    def test_malformed_json_falls_back_to_urls(self):
        """Should treat broken JSON as free text."""
        ids = extract_identifiers('{"imdb": https://www.imdb.com/title/tt1160419')

        assert ids.imdb == "tt1160419"

    def test_json_array_falls_back_to_urls(self):
        """Should treat non-object JSON as free text."""
        ids = extract_identifiers('["https://www.imdb.com/title/tt1160419"]')

        assert ids.imdb == "tt1160419"

    def test_empty_input(self):
        """Should return an empty set for missing or blank input."""
        assert extract_identifiers(None) == ExternalIdentifierSet()
        assert extract_identifiers("   ") == ExternalIdentifierSet()

    def test_text_without_links(self):
        """Should return an empty set for text without provider URLs."""
        assert not extract_identifiers("watched on a rainy sunday")

    def test_get_by_key(self):
        """Should expose ids by provider key."""
        ids = extract_identifiers('{"imdb": "tt1160419"}')

        assert ids.get("imdb") == "tt1160419"
        assert ids.get("tmdb") is None
