import random

import pytest

from conftest import scramble_list
from mangadl.plugins.sojson import unscramble
from mangadl.plugins.sojson.unscramble import (find_key_locations, read_unscramble_key,
    remove_key_characters, unscramble_string, split_url_list)

URLS = ",".join("https://iweb_5.mangapicgallery.com/r/newpiclink/manga/{:04d}.jpg".format(i) for i in range(12))

def script_for(locations):
    return "\n".join("var a{0} = str.charAt( {0} );".format(loc) for loc in locations)

@pytest.mark.parametrize("locations", [[], [7], [3, 19, 25, 40, 88]])
def test_round_trip(locations):
    rng = random.Random(len(locations))
    keys = [rng.randint(1, 9) for _ in locations]
    scrambled = scramble_list(URLS, keys, locations)
    assert unscramble(scrambled, script_for(locations)) == URLS

def test_identity_without_markers():
    for text in ("", "abc", URLS, "1,2,3,4"):
        assert unscramble(text, "var x = 1;") == text

def test_not_digits_means_not_scrambled():
    assert unscramble(URLS, script_for([0, 5])) == URLS

def test_location_out_of_range():
    assert unscramble("12", script_for([0, 10])) == "12"
    assert read_unscramble_key("12", [0, 10]) is None

def test_locations_are_distinct_and_sorted():
    assert find_key_locations("str.charAt(9) str.charAt(2) str.charAt(9)") == [2, 9]

def test_remove_key_characters():
    assert remove_key_characters("a1b2c", [1, 3]) == "abc"

def test_hand_traced_scenario():
    # Positions 0 and 2 hold '2' and '0'. Removing them leaves ",,3,1", and the
    # only odd swap (3 <-> 1 for key 2) exchanges two commas.
    text = "2,0,3,1"
    script = script_for([0, 2])
    assert read_unscramble_key(text, [0, 2]) == [2, 0]
    assert unscramble(text, script) == ",,3,1"
    assert split_url_list(unscramble(text, script)) == ["3", "1"]

def test_unscramble_string_swaps():
    assert unscramble_string("abcd", [1]) == "badc"
    assert unscramble_string("abcdef", [0]) == "abcdef"

def test_split_url_list():
    assert split_url_list(" a , ,b,\n") == ["a", "b"]
