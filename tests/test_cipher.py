import pytest

from vidcipher.resolver.cipher.extractor import (
    CipherHelperMatcher, CipherProgramExtractor, default_matchers, extract_cipher_program,
)
from vidcipher.resolver.cipher.jsparse import find_function, find_object, iter_functions, split_top_level
from vidcipher.resolver.cipher.operations import Reverse, SpliceFromIndex, SwapAt, decipher
from vidcipher.resolver.errors import CipherOperationUnrecognized, CipherProgramNotFound

from conftest import DECIPHERED_DIGITS, PLAYER_SCRIPT

EXPECTED = (SwapAt(3), Reverse(), SpliceFromIndex(2))


# --- executor ---
def test_decipher_applies_operations_in_order():
    """Operations run left to right over one character list"""
    program = (SwapAt(2), Reverse(), SpliceFromIndex(1))
    assert decipher(program, "abcdef") == "edabc"


def test_swap_wraps_index_around_length():
    """Swap index is taken modulo the token length"""
    assert decipher((SwapAt(4),), "abc") == "bac"


def test_swap_twice_restores_token():
    """Swapping with the same index twice is a no-op"""
    for index in (0, 1, 5, 13):
        assert decipher((SwapAt(index), SwapAt(index)), "signature") == "signature"


def test_same_program_same_output():
    """Executing a program is deterministic"""
    program = (Reverse(), SwapAt(7), SpliceFromIndex(3))
    assert decipher(program, "0123456789AB") == decipher(program, "0123456789AB")


def test_splice_past_end_clears_token():
    """Splicing beyond the token length leaves nothing"""
    assert decipher((SpliceFromIndex(10),), "abc") == ""


def test_empty_program_and_empty_token():
    """Empty program is identity; empty token survives every operation"""
    assert decipher((), "abc") == "abc"
    assert decipher((SwapAt(3), Reverse(), SpliceFromIndex(1)), "") == ""


def test_decipher_does_not_mutate_program():
    """The program tuple is left as it was"""
    program = (Reverse(),)
    decipher(program, "ab")
    assert program == (Reverse(),)


# --- js slicing ---
def test_split_top_level_ignores_nested_and_quoted_separators():
    """Semicolons inside strings and nested braces do not split statements"""
    body = 'a=a.split(";");b(function(){x;y});return a.join("")'
    assert split_top_level(body) == ['a=a.split(";")', "b(function(){x;y})", 'return a.join("")']


def test_find_object_reads_function_members():
    """Helper object literal yields its function members by key"""
    members = find_object(PLAYER_SCRIPT, "Xy")
    assert set(members) == {"kT", "Qp", "$w"}
    assert members["Qp"].params == ["a", "b"]


def test_find_function_by_assignment():
    """`name=function(...)` definitions are found and split into statements"""
    fn = find_function(PLAYER_SCRIPT, "Go")
    assert fn.params == ["a"]
    assert len(fn.statements) == 5


def test_iter_functions_lists_every_definition():
    """Reused names yield every definition in source order"""
    source = "(function(){var Go=function(a,b){return a+b};})();" + PLAYER_SCRIPT
    assert [fn.params for fn in iter_functions(source, "Go")] == [["a", "b"], ["a"]]


# --- extraction ---
def test_extract_program_from_player_script():
    """Entry function and helpers turn into the operation list"""
    program = extract_cipher_program(PLAYER_SCRIPT, "vflTest01")
    assert program == EXPECTED
    assert decipher(program, "0123456789") == DECIPHERED_DIGITS


def test_extract_survives_renamed_identifiers():
    """Only the shape matters, so a rebuilt player with new names still works"""
    renamed = (PLAYER_SCRIPT.replace("Xy", "q$").replace("Go", "Zr")
               .replace("kT", "aa").replace("Qp", "bb").replace("$w", "cc"))
    assert extract_cipher_program(renamed, "vflRenamed") == EXPECTED


def test_entry_name_reused_in_another_scope():
    """An earlier function with the entry's name but another shape is skipped"""
    source = "(function(){var Go=function(a,b){return a+b};})();" + PLAYER_SCRIPT
    assert extract_cipher_program(source, "vflCollide") == EXPECTED


def test_entry_name_reused_without_call_site():
    """Structural scan uses the definition it matched, not a lookup by name"""
    source = ("(function(){var Go=function(a,b){return a+b};})();"
              + PLAYER_SCRIPT.replace('d.set("signature",Go(c))', "d.put(Go(c))"))
    assert extract_cipher_program(source, "vflCollide") == EXPECTED


def test_helper_object_name_reused_in_another_scope():
    """An earlier object literal lacking the called helpers is skipped"""
    source = "(function(){var Xy={};var Zq=1;})();" + PLAYER_SCRIPT
    assert extract_cipher_program(source, "vflCollide") == EXPECTED
    partial = "(function(){var Xy={kT:function(a){a.sort()}};})();" + PLAYER_SCRIPT
    assert extract_cipher_program(partial, "vflCollide") == EXPECTED


def test_extract_with_bracket_calls_and_function_declaration():
    """`Obj["m"](p,N)` calls and `function name(p)` declarations are read too"""
    source = """var Ab={"rv":function(x){x.reverse()},"sp":function(x,y){x.splice(0,y)}};
function nq(t){t=t.split("");Ab["sp"](t,1);Ab["rv"](t,7);return t.join("")}
"""
    program = extract_cipher_program(source, "vflDecl")
    assert program == (SpliceFromIndex(1), Reverse())
    assert decipher(program, "abcd") == "dcb"


def test_structural_fallback_without_known_call_site():
    """Without a recognised call site the split/join shape finds the entry"""
    source = PLAYER_SCRIPT.replace('d.set("signature",Go(c))', "d.put(Go(c))")
    assert extract_cipher_program(source, "vflNoCallSite") == EXPECTED


def test_missing_entry_function():
    """No split/join function at all is a CipherProgramNotFound"""
    source = "var Xy={kT:function(a){a.reverse()}};var f=function(a){return a};"
    with pytest.raises(CipherProgramNotFound) as exc:
        extract_cipher_program(source, "vflBroken")
    assert exc.value.version == "vflBroken"


def test_unknown_helper_shape():
    """A helper matching no registered shape names itself in the error"""
    source = PLAYER_SCRIPT.replace("a.reverse()", "a.sort()")
    with pytest.raises(CipherOperationUnrecognized) as exc:
        extract_cipher_program(source, "vflSorted")
    assert "kT" in str(exc.value)


def test_missing_helper_object():
    """Entry calling an object that is never defined is unrecognized"""
    source = 'Go=function(a){a=a.split("");Zz.x(a,1);return a.join("")};'
    with pytest.raises(CipherOperationUnrecognized):
        extract_cipher_program(source, "vflNoHelper")


def test_custom_matcher_extends_extraction():
    """Extra matchers plug in next to the default ones"""
    class ShiftMatcher(CipherHelperMatcher):
        name = "shift"

        def matches(self, helper):
            return helper.shape() == ["@0.shift()"]

        def build(self, argument):
            return SpliceFromIndex(1)

    source = PLAYER_SCRIPT.replace("a.reverse()", "a.shift()")
    extractor = CipherProgramExtractor(default_matchers() + [ShiftMatcher()])
    program = extractor.extract(source, "vflShift")
    assert program == (SwapAt(3), SpliceFromIndex(1), SpliceFromIndex(2))
