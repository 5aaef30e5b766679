from club_attendance.utils import get_chosung, match_search


def test_get_chosung_reduces_syllables():
    assert get_chosung("김철수") == "ㄱㅊㅅ"
    assert get_chosung("Kim철수 2") == "Kimㅊㅅ 2"


def test_get_chosung_block_edges():
    assert get_chosung("가") == "ㄱ"
    assert get_chosung("힣") == "ㅎ"
    assert get_chosung("힤") == "힤"
    assert get_chosung("꯿") == "꯿"


def test_match_search_initial_consonants():
    assert match_search("김철수", "ㄱㅊㅅ")
    assert match_search("김철수", "ㅊㅅ")
    assert not match_search("김철수", "박")


def test_match_search_substring_and_case():
    assert match_search("김철수", "철수")
    assert match_search("Kim Chulsoo", "KIM")
    assert not match_search("Kim", "lee")


def test_empty_query_matches_everything():
    assert match_search("Kim", "")
    assert match_search("", "")
