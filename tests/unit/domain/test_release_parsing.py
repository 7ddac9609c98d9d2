"""Tests for release-name and folder-structure parsing."""

import pytest

from mediarr.domain.value_objects.release_parsing import (
    EpisodeMarker,
    ParsedAlbumFolder,
    ParsedArtistAlbumFolder,
    ParsedEpisodeFile,
    ParsedTvInfo,
    clean_author_name,
    looks_like_author_name,
    normalize_title,
    parse_album_folder,
    parse_artist_album_folder,
    parse_book_filename,
    parse_book_path,
    parse_episode_filename,
    parse_episode_marker,
    parse_movie_name,
    parse_movie_path,
    parse_season_folder,
    parse_tv_filename,
    parse_tv_path,
)


class TestNormalizeTitle:
    """Tests for normalize_title()."""

    def test_strips_everything_but_letters_and_digits(self) -> None:
        """Test that dotted and spaced spellings share a key."""
        assert normalize_title("The Office (US)") == "theofficeus"
        assert normalize_title("the.office.us") == "theofficeus"

    def test_empty(self) -> None:
        """Test that None and "" give an empty key."""
        assert normalize_title(None) == ""
        assert normalize_title("") == ""


class TestEpisodeMarker:
    """Tests for parse_episode_marker()."""

    def test_single_episode(self) -> None:
        """Test a plain SxxEyy marker."""
        assert parse_episode_marker("Show.S02E10.mkv") == EpisodeMarker(2, 10)

    @pytest.mark.parametrize("name", ["Show.S01E01-02.mkv", "Show.S01E01E02.mkv"])
    def test_multi_episode(self, name: str) -> None:
        """Test both multi-episode spellings."""
        marker = parse_episode_marker(name)
        assert marker is not None
        assert marker.is_multi_episode is True
        assert marker.episode_number == 1
        assert marker.end_episode_number == 2

    def test_range_with_repeated_e(self) -> None:
        """Test "S01E01-E03" keeps the whole range."""
        marker = parse_episode_marker("Show - S01E01-E03 - Title")
        assert marker == EpisodeMarker(1, 1, is_multi_episode=True, end_episode_number=3)

    @pytest.mark.parametrize("name", ["Show.S01E05-1080p.WEB.mkv", "Show.S01E05-720p.mkv"])
    def test_resolution_after_hyphen_is_not_a_range(self, name: str) -> None:
        """Test that "S01E05-1080p" is episode 5, not episodes 5 to 108."""
        assert parse_episode_marker(name) == EpisodeMarker(1, 5)

    def test_x_notation(self) -> None:
        """Test "1x05"."""
        assert parse_episode_marker("Show.1x05.mkv") == EpisodeMarker(1, 5)

    def test_dotted_marker(self) -> None:
        """Test "S01.E05"."""
        assert parse_episode_marker("Show S01.E05") == EpisodeMarker(1, 5)

    def test_no_marker(self) -> None:
        """Test that names without a marker give None."""
        assert parse_episode_marker("Some Movie (2020)") is None


class TestSeasonFolder:
    """Tests for parse_season_folder()."""

    @pytest.mark.parametrize(
        ("folder", "season"),
        [
            ("Season 01", 1),
            ("season 12", 12),
            ("S01", 1),
            ("Staffel 2", 2),
            ("Saison 3", 3),
            ("1", 1),
        ],
    )
    def test_season_folders(self, folder: str, season: int) -> None:
        """Test the supported season folder spellings."""
        assert parse_season_folder(folder) == season

    @pytest.mark.parametrize("folder", ["Extras", "Featurettes", "Season One", "2008"])
    def test_not_season_folders(self, folder: str) -> None:
        """Test that other folders are not seasons."""
        assert parse_season_folder(folder) is None


class TestEpisodeFilename:
    """Tests for parse_episode_filename()."""

    def test_show_marker_title(self) -> None:
        """Test "Show - S01E02 - Title"."""
        assert parse_episode_filename("Breaking Bad - S01E02 - Cat's in the Bag.mkv") == (
            ParsedEpisodeFile(1, 2, "Cat's in the Bag")
        )

    def test_show_marker_without_title(self) -> None:
        """Test "Show - S01E02"."""
        assert parse_episode_filename("Breaking Bad - S01E02.mkv") == ParsedEpisodeFile(1, 2)

    def test_marker_title(self) -> None:
        """Test "S01E02 - Title"."""
        assert parse_episode_filename("S01E02 - Title.mkv") == ParsedEpisodeFile(1, 2, "Title")

    def test_x_notation(self) -> None:
        """Test "show.1x02"."""
        assert parse_episode_filename("show.1x02.mkv") == ParsedEpisodeFile(1, 2)

    def test_unparseable(self) -> None:
        """Test that names without a marker give None."""
        assert parse_episode_filename("random.mkv") is None


class TestTvFilename:
    """Tests for parse_tv_filename()."""

    def test_scene_name(self) -> None:
        """Test a scene-style episode name."""
        info = parse_tv_filename("Breaking.Bad.S01E02.Cats.in.the.Bag.1080p.WEB-DL.mkv")
        assert info.show_title == "Breaking Bad"
        assert info.season_number == 1
        assert info.episode_number == 2
        assert info.episode_title == "Cats in the Bag"
        assert info.resolution == "1080p"
        assert info.source == "WEB-DL"
        assert info.quality == "1080p WEB-DL"

    def test_dotted_year(self) -> None:
        """Test that ".2023." is the year and leaves the title."""
        info = parse_tv_filename("Show.Name.2023.S01E01.mkv")
        assert info.show_title == "Show Name"
        assert info.year == 2023

    def test_spaced_year_before_marker(self) -> None:
        """Test "Show 2023 S01E05"."""
        info = parse_tv_filename("Show 2023 S01E05.mkv")
        assert info.show_title == "Show"
        assert info.year == 2023
        assert info.episode_number == 5

    def test_x_notation_title(self) -> None:
        """Test that the show title is cut at "1x05"."""
        info = parse_tv_filename("Show.1x05.mkv")
        assert info.show_title == "Show"
        assert (info.season_number, info.episode_number) == (1, 5)

    def test_multi_episode_flags(self) -> None:
        """Test that range info is carried through."""
        info = parse_tv_filename("Show.S01E01-02.mkv")
        assert info.is_multi_episode is True
        assert info.end_episode_number == 2

    def test_no_marker(self) -> None:
        """Test that a file without a marker has no numbers."""
        info = parse_tv_filename("Behind the Scenes.mkv")
        assert info.season_number is None
        assert info.episode_number is None


class TestTvPath:
    """Tests for parse_tv_path()."""

    def test_show_season_file(self) -> None:
        """Test the full show/season/file layout."""
        info = parse_tv_path("Breaking Bad (2008)/Season 01/Breaking Bad - S01E01 - Pilot.mkv")
        assert info.show_title == "Breaking Bad"
        assert info.year == 2008
        assert info.season_number == 1
        assert info.episode_number == 1
        assert info.episode_title == "Pilot"

    def test_season_folder_wins(self) -> None:
        """Test that the folder season beats the file marker."""
        info = parse_tv_path("Show (2020)/Season 02/Show - S01E05.mkv")
        assert info.season_number == 2
        assert info.episode_number == 5

    def test_season_file_layout(self) -> None:
        """Test "Season NN/file" with the show taken from the file."""
        info = parse_tv_path("Season 02/Show - S01E05.mkv")
        assert info.show_title == "Show"
        assert info.season_number == 2

    def test_show_file_layout(self) -> None:
        """Test "Show (Year)/file"."""
        info = parse_tv_path("Dark (2017)/Dark.S01E01.mkv")
        assert info.show_title == "Dark"
        assert info.year == 2017
        assert (info.season_number, info.episode_number) == (1, 1)

    def test_windows_separators(self) -> None:
        """Test that backslashes split like slashes."""
        info = parse_tv_path("Dark (2017)\\Season 01\\Dark - S01E03.mkv")
        assert info.show_title == "Dark"
        assert info.episode_number == 3

    def test_empty_path(self) -> None:
        """Test that an empty path gives an empty result."""
        assert parse_tv_path("") == ParsedTvInfo()


class TestMovieParsing:
    """Tests for parse_movie_name() and parse_movie_path()."""

    def test_scene_name(self) -> None:
        """Test a full scene release name."""
        info = parse_movie_name("The.Matrix.1999.1080p.BluRay.x264-GROUP.mkv")
        assert info.title == "The Matrix"
        assert info.year == 1999
        assert info.resolution == "1080p"
        assert info.source == "BLURAY"
        assert info.codec == "X264"
        assert info.release_group == "GROUP"
        assert info.quality == "1080p BLURAY"

    def test_hyphenated_title_is_not_a_group(self) -> None:
        """Test that "Spider-Man" keeps its second half."""
        info = parse_movie_name("Spider-Man (2002)")
        assert info.title == "Spider-Man"
        assert info.year == 2002
        assert info.release_group is None

    def test_tokens_match_whole_words_only(self) -> None:
        """Test that "Cats" is not a telesync release."""
        info = parse_movie_name("Cats (2019)")
        assert info.title == "Cats"
        assert info.source is None

    def test_web_dl_is_not_a_group(self) -> None:
        """Test that the "-DL" of "WEB-DL" isn't taken as a release group."""
        info = parse_movie_name("Movie.2020.1080p.WEB-DL.mkv")
        assert info.title == "Movie"
        assert info.source == "WEB-DL"
        assert info.release_group is None

    def test_path_uses_top_folder(self) -> None:
        """Test that the clean folder name wins over the file name."""
        info = parse_movie_path("The Matrix (1999)/The.Matrix.1999.1080p.BluRay.x264-GROUP.mkv")
        assert info.title == "The Matrix"
        assert info.year == 1999
        assert info.resolution is None


class TestBookParsing:
    """Tests for the book parsers."""

    def test_clean_author_name(self) -> None:
        """Test "Last, First" reordering and whitespace collapsing."""
        assert clean_author_name("King, Stephen") == "Stephen King"
        assert clean_author_name("  Stephen   King ") == "Stephen King"

    def test_looks_like_author_name(self) -> None:
        """Test the author-name heuristic."""
        assert looks_like_author_name("Stephen King")
        assert not looks_like_author_name("The Lord of the Rings")
        assert not looks_like_author_name("Volume 2")
        assert not looks_like_author_name("")

    def test_author_title_filename(self) -> None:
        """Test "Author - Title.epub"."""
        info = parse_book_filename("Stephen King - The Shining.epub")
        assert info.author_name == "Stephen King"
        assert info.title == "The Shining"
        assert info.format == "EPUB"

    def test_bare_title_filename(self) -> None:
        """Test a file name with no author."""
        info = parse_book_filename("It.pdf")
        assert info.author_name is None
        assert info.title == "It"
        assert info.format == "PDF"

    def test_author_folder(self) -> None:
        """Test "Author/Title (Year).epub"."""
        info = parse_book_path("Stephen King/The Shining (1977).epub")
        assert info.author_name == "Stephen King"
        assert info.title == "The Shining"
        assert info.year == 1977
        assert info.format == "EPUB"

    def test_last_first_author_folder(self) -> None:
        """Test that "King, Stephen" folders are reordered."""
        assert parse_book_path("King, Stephen/It.epub").author_name == "Stephen King"

    @pytest.mark.parametrize(
        ("stem", "series", "position", "title"),
        [
            ("Mistborn #1 - The Final Empire", "Mistborn", 1, "The Final Empire"),
            ("Stormlight Archive, Book 2 - Words of Radiance", "Stormlight Archive", 2,
             "Words of Radiance"),
            ("[Discworld 1] The Colour of Magic", "Discworld", 1, "The Colour of Magic"),
            ("The Final Empire (Mistborn #1)", "Mistborn", 1, "The Final Empire"),
            ("The Way of Kings (Stormlight Archive, Book 1)", "Stormlight Archive", 1,
             "The Way of Kings"),
            ("Dune #3", None, 3, "Dune"),
        ],
    )
    def test_series_notations(
        self, stem: str, series: str | None, position: int, title: str
    ) -> None:
        """Test every supported series notation."""
        info = parse_book_path(f"Some Author/{stem}.epub")
        assert info.series_name == series
        assert info.series_position == position
        assert info.title == title

    def test_series_with_year(self) -> None:
        """Test that the year is removed before series parsing."""
        info = parse_book_path("Brandon Sanderson/Mistborn #1 - The Final Empire (2006).epub")
        assert info.year == 2006
        assert info.series_name == "Mistborn"
        assert info.title == "The Final Empire"


class TestMusicFolders:
    """Tests for the album and download folder parsers."""

    @pytest.mark.parametrize("folder", ["[1982] Thriller", "Thriller (1982)"])
    def test_album_folder_layouts(self, folder: str) -> None:
        """Test both supported album folder layouts."""
        assert parse_album_folder(folder) == ParsedAlbumFolder("Thriller", 1982)

    def test_album_folder_without_year(self) -> None:
        """Test a plain album folder."""
        assert parse_album_folder("Thriller") == ParsedAlbumFolder("Thriller")

    def test_number_that_is_not_a_year(self) -> None:
        """Test that "1000 Forms of Fear" keeps its number."""
        assert parse_album_folder("1000 Forms of Fear") == ParsedAlbumFolder("1000 Forms of Fear")

    def test_artist_album_folder(self) -> None:
        """Test "Artist - Album (Year)"."""
        assert parse_artist_album_folder("Artist - Album (2020)") == ParsedArtistAlbumFolder(
            "Artist", "Album", 2020
        )
        assert parse_artist_album_folder("Artist - Album") == ParsedArtistAlbumFolder(
            "Artist", "Album"
        )

    def test_artist_album_folder_without_split(self) -> None:
        """Test that folders without " - " don't parse."""
        assert parse_artist_album_folder("Thriller") is None

    def test_artist_with_hyphen(self) -> None:
        """Test that a spaced " - " separator wins over a hyphen inside the artist."""
        assert parse_artist_album_folder("Jay-Z - The Blueprint (2001)") == (
            ParsedArtistAlbumFolder("Jay-Z", "The Blueprint", 2001)
        )
        assert parse_artist_album_folder("Artist-Album") == ParsedArtistAlbumFolder(
            "Artist", "Album"
        )
