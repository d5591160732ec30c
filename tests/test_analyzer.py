"""Tests for static analysis of player scripts."""

from pathlib import Path

from playercipher.core.js_interpreter import SandboxedEvaluator
from playercipher.models import (
    OperationKind,
    ReverseOperation,
    SpliceOperation,
    SwapOperation,
    UnknownOperation,
)
from playercipher.resolver.analyzer import (
    N_FUNCTION_NAME,
    analyze,
    classify_helper,
    extract_cipher_operations,
    extract_n_function,
)

_DATA = Path(__file__).parent / "data"


def _player() -> str:
    return (_DATA / "player.js").read_text()


class TestCipherOperations:
    def test_fixture_player(self):
        assert extract_cipher_operations(_player()) == [
            SwapOperation(index=2),
            ReverseOperation(),
            SpliceOperation(count=1),
        ]

    def test_no_anchor(self):
        assert extract_cipher_operations("var a=function(b){return b};") is None

    def test_empty_body(self):
        assert extract_cipher_operations('Qz=function(a){a=a.split("");return a.join("")};') == []

    def test_unknown_helper_shape(self):
        script = (
            'var Ob={rot:function(a,b){a.push(a.shift())},rv:function(a){a.reverse()}};\n'
            'Cf=function(a){a=a.split("");Ob.rot(a,3);Ob.rv(a,0);Ob.rot(a,1);return a.join("")};\n'
        )
        assert extract_cipher_operations(script) == [
            UnknownOperation(),
            ReverseOperation(),
            UnknownOperation(),
        ]

    def test_missing_helper_definition(self):
        script = 'Cf=function(a){a=a.split("");Zz.q(a,3);return a.join("")};'
        assert extract_cipher_operations(script) == [UnknownOperation()]

    def test_bracket_helper_call_and_spacing(self):
        script = (
            'var Ob={"sp":function(a,b){a.splice(0,b)}};\n'
            'Cf=function(a){a=a.split(""); Ob["sp"](a,4); return a.join("")};\n'
        )
        assert extract_cipher_operations(script) == [SpliceOperation(count=4)]


class TestClassifyHelper:
    def test_swap(self):
        body = "var c=a[0];a[0]=a[b%a.length];a[b%a.length]=c"
        assert classify_helper(["a", "b"], body) == OperationKind.SWAP

    def test_swap_other_names(self):
        body = "var z = x[0]; x[0] = x[y % x.length]; x[y % x.length] = z"
        assert classify_helper(["x", "y"], body) == OperationKind.SWAP

    def test_splice(self):
        assert classify_helper(["a", "b"], "a.splice(0,b)") == OperationKind.SPLICE

    def test_reverse(self):
        assert classify_helper(["a"], "a.reverse()") == OperationKind.REVERSE

    def test_unknown(self):
        assert classify_helper(["a", "b"], "a.sort()") == OperationKind.UNKNOWN


class TestNFunction:
    def test_wrapped_source(self):
        source = extract_n_function(_player())
        assert source.startswith(f"function {N_FUNCTION_NAME}(a){{var b=a.split(\"\")")
        assert source.endswith('return b.join("")}')
        assert "\n" not in source

    def test_wrapped_source_evaluates(self):
        source = extract_n_function(_player())
        assert SandboxedEvaluator().evaluate(source, "abcdef") == "afedcb"

    def test_prefers_player_names_over_earlier_splitter(self):
        script = (
            'Lx=function(d){var c=d.split("");c.sort();return c.join("")};\n'
            'Nf=function(a){var b=a.split("");b.reverse();return b.join("")};'
        )
        source = extract_n_function(script)
        assert "b.reverse()" in source
        assert "c.sort()" not in source
        assert SandboxedEvaluator().evaluate(source, "abc") == "cba"

    def test_other_names_as_fallback(self):
        source = extract_n_function('Nf=function(x){var y=x.split("");y.reverse();return y.join("")};')
        assert source.startswith(f'function {N_FUNCTION_NAME}(x){{var y=x.split("")')
        assert SandboxedEvaluator().evaluate(source, "abc") == "cba"

    def test_no_anchor(self):
        assert extract_n_function("var x=1;") is None

    def test_no_terminator(self):
        assert extract_n_function('f=function(a){var b=a.split("");return b}') is None


class TestAnalyze:
    def test_complete(self):
        result = analyze(_player())
        assert result.cipher_found
        assert result.n_function_found
        assert len(result.operations) == 3

        profile = result.to_profile("abc123")
        assert profile.player_version_id == "abc123"
        assert profile.operations == result.operations
        assert profile.has_n_function

    def test_deterministic(self):
        script = _player()
        assert analyze(script) == analyze(script)

    def test_nothing_found(self):
        result = analyze("console.log(1)")
        assert not result.cipher_found
        assert not result.n_function_found
        assert result.operations == ()
        assert result.to_profile("v1").n_function_source is None
