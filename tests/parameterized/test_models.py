"""Tests for parameterized models."""

import pytest
import structlog
from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from paramretry.config import Settings
from paramretry.parameterized.decorators import file_parameters, ignore, parameters
from paramretry.parameterized.errors import ConfigurationError, UnsupportedScheme
from paramretry.parameterized.models import (
    Description,
    ExecutionOutcome,
    FileSpec,
    LiteralSpec,
    OutcomeStatus,
    OverrideSpec,
    ParameterSpec,
    RetryPolicy,
    SourceSpec,
    SpecKind,
    TestMethodDescriptor,
    split_scheme,
    stringify,
)


class SampleCase:
    @parameters((1, 2))
    def test_add(self, a: int, b: int):
        pass

    def test_plain(self):
        pass

    @ignore("flaky backend")
    @parameters(1, 2)
    def test_ignored(self, value):
        pass

    def test_varargs(self, *values):
        pass


class OtherCase:
    def test_add(self, a: int, b: int):
        pass

    def test_add_str(self, a: str, b: str):
        pass


class TestSpecKind:
    """Tests for SpecKind enum."""

    def test_spec_kinds_exist(self):
        """Test that all spec kinds are defined."""
        assert SpecKind.LITERAL == "literal"
        assert SpecKind.OVERRIDE == "override"
        assert SpecKind.SOURCE == "source"
        assert SpecKind.FILE == "file"


class TestParameterSpec:
    """Tests for the ParameterSpec tagged union."""

    def test_discriminated_by_kind(self):
        """Test that the union picks the variant from the kind field."""
        adapter = TypeAdapter(ParameterSpec)

        spec = adapter.validate_python({"kind": "override", "raw": "1;2"})

        assert isinstance(spec, OverrideSpec)
        assert spec.split() == ["1", "2"]

    def test_source_spec_splits_method_names(self):
        """Test comma separated method names are split and stripped."""
        spec = SourceSpec(methods="first, second ,third")

        assert spec.methods == ("first", "second", "third")
        assert spec.source is None

    def test_source_spec_accepts_sequence(self):
        """Test method names may be given as a list."""
        spec = SourceSpec(methods=["only"])

        assert spec.methods == ("only",)

    def test_source_spec_default_has_no_methods(self):
        """Test an empty source spec."""
        spec = SourceSpec()

        assert spec.methods == ()

    def test_literal_spec_keeps_rows(self):
        """Test literal rows are kept in order."""
        spec = LiteralSpec(rows=[(1, 2), (3, 4)])

        assert spec.rows == ((1, 2), (3, 4))
        assert spec.fallback is None

    def test_specs_are_frozen(self):
        """Test that specs cannot be modified after construction."""
        spec = OverrideSpec(raw="1")

        with pytest.raises(PydanticValidationError):
            spec.raw = "2"


class TestFileSpec:
    """Tests for FileSpec validation."""

    @pytest.mark.parametrize(
        "path,scheme,location",
        [
            ("params.csv", None, "params.csv"),
            ("file:/tmp/params.csv", "file", "/tmp/params.csv"),
            ("classpath:params.csv", "classpath", "params.csv"),
        ],
    )
    def test_scheme_split(self, path, scheme, location):
        """Test that the scheme prefix is separated from the location."""
        spec = FileSpec(path=path)

        assert spec.scheme == scheme
        assert spec.location == location

    def test_unknown_scheme_rejected(self):
        """Test that an unknown scheme fails at construction."""
        with pytest.raises(UnsupportedScheme) as exc_info:
            FileSpec(path="http://example.com/params.csv")

        assert exc_info.value.scheme == "http"
        assert isinstance(exc_info.value, ConfigurationError)

    def test_mapper_must_have_map(self):
        """Test that a mapper class without map() is rejected."""
        with pytest.raises(PydanticValidationError):
            FileSpec(path="params.csv", mapper=dict)

    def test_empty_path_rejected(self):
        """Test that an empty path is rejected."""
        with pytest.raises(PydanticValidationError):
            FileSpec(path="")

    def test_split_scheme_without_colon(self):
        """Test split_scheme on a bare path."""
        assert split_scheme("data/rows.txt") == (None, "data/rows.txt")


class TestRetryPolicy:
    """Tests for RetryPolicy resolution."""

    def test_default_count(self):
        """Test the built-in default of two retries."""
        policy = RetryPolicy.resolve()

        assert policy.count == 2
        assert policy.max_attempts == 3

    def test_settings_value_used(self):
        """Test the RETRY_COUNT setting is used when no explicit value is given."""
        policy = RetryPolicy.resolve(settings=Settings(retry_count="4"))

        assert policy.count == 4

    def test_explicit_wins_over_settings(self):
        """Test an explicit override takes precedence over settings."""
        policy = RetryPolicy.resolve(explicit=1, settings=Settings(retry_count="4"))

        assert policy.count == 1

    def test_explicit_string_parsed(self):
        """Test an explicit numeric string is parsed."""
        assert RetryPolicy.resolve(explicit=" 3 ").count == 3

    def test_non_numeric_logged_and_default_kept(self):
        """Test a bad value is logged and the default retained."""
        with structlog.testing.capture_logs() as logs:
            policy = RetryPolicy.resolve(settings=Settings(retry_count="often"))

        assert policy.count == 2
        warnings = [log for log in logs if log["log_level"] == "warning"]
        assert len(warnings) == 1
        assert warnings[0]["value"] == "often"

    def test_negative_logged_and_default_kept(self):
        """Test a negative value never produces a negative count."""
        with structlog.testing.capture_logs() as logs:
            policy = RetryPolicy.resolve(explicit=-1)

        assert policy.count == 2
        assert logs[0]["log_level"] == "warning"

    def test_zero_allowed(self):
        """Test zero retries is a valid policy."""
        assert RetryPolicy.resolve(explicit=0).count == 0

    def test_negative_count_rejected_by_model(self):
        """Test the model itself rejects negative counts."""
        with pytest.raises(PydanticValidationError):
            RetryPolicy(count=-3)


class TestExecutionOutcome:
    """Tests for ExecutionOutcome factories."""

    def test_passed(self):
        outcome = ExecutionOutcome.passed(attempts=3)

        assert outcome.status == OutcomeStatus.PASSED
        assert outcome.attempts == 3
        assert outcome.error is None

    def test_failed_keeps_error(self):
        error = AssertionError("third")
        outcome = ExecutionOutcome.failed(error, attempts=3)

        assert outcome.status == OutcomeStatus.FAILED
        assert outcome.error is error
        assert outcome.detail == "third"

    def test_failed_assumption(self):
        outcome = ExecutionOutcome.failed_assumption(ValueError("no network"))

        assert outcome.status == OutcomeStatus.FAILED_ASSUMPTION
        assert outcome.attempts == 1
        assert outcome.detail == "no network"


class TestStringify:
    """Tests for row rendering."""

    def test_stringify_row(self):
        """Test values and index are rendered."""
        assert stringify((1, "a", None), 0) == "[0] 1, a, None"

    def test_stringify_nested(self):
        """Test nested sequences are rendered in brackets."""
        assert stringify(([1, 2], 3), 4) == "[4] [1, 2], 3"

    def test_index_keeps_rendering_unique(self):
        """Test equal rows at different positions render differently."""
        assert stringify((1,), 1) != stringify((1,), 10)
        assert not stringify((1,), 10).startswith(stringify((1,), 1))


class TestDescription:
    """Tests for Description nodes."""

    def test_suite_with_children(self):
        suite = Description(display_name="test_add")
        suite.add_child(Description(display_name="[0] 1 (test_add)"))

        assert suite.is_suite
        assert str(suite.children[0]) == "[0] 1 (test_add)"

    def test_leaf(self):
        assert not Description(display_name="test_plain").is_suite


class TestTestMethodDescriptor:
    """Tests for TestMethodDescriptor."""

    def test_identity(self):
        """Test name, signature and arity are read from the function."""
        descriptor = TestMethodDescriptor(SampleCase.test_add, SampleCase)

        assert descriptor.name == "test_add"
        assert descriptor.parameter_types == (int, int)
        assert descriptor.arity == 2
        assert descriptor.is_parameterised
        assert isinstance(descriptor.spec, LiteralSpec)

    def test_plain_method_not_parameterised(self):
        descriptor = TestMethodDescriptor(SampleCase.test_plain, SampleCase)

        assert descriptor.arity == 0
        assert descriptor.spec is None
        assert not descriptor.is_parameterised
        assert not descriptor.explicitly_ignored

    def test_ignore_marker(self):
        descriptor = TestMethodDescriptor(SampleCase.test_ignored, SampleCase)

        assert descriptor.explicitly_ignored
        assert descriptor.ignore_reason == "flaky backend"

    def test_varargs_detected(self):
        descriptor = TestMethodDescriptor(SampleCase.test_varargs, SampleCase)

        assert descriptor.variadic

    def test_equality_by_name_and_signature(self):
        """Test the same method found through different classes compares equal."""
        first = TestMethodDescriptor(SampleCase.test_add, SampleCase)
        second = TestMethodDescriptor(OtherCase.test_add, OtherCase)
        different = TestMethodDescriptor(OtherCase.test_add_str, OtherCase)

        assert first == second
        assert hash(first) == hash(second)
        assert first != different

    def test_both_markers_rejected(self):
        """Test parameters and file parameters on one method is a configuration error."""

        @parameters(1)
        @file_parameters("rows.txt")
        def test_conflict(self, value):
            pass

        with pytest.raises(ConfigurationError, match="Remove one of them"):
            TestMethodDescriptor(test_conflict, SampleCase)

    def test_memoized_rows_computed_once(self):
        """Test rows are computed on first access and then cached."""
        descriptor = TestMethodDescriptor(SampleCase.test_add, SampleCase)
        calls = []

        def compute():
            calls.append(1)
            return [(1, 2)]

        assert not descriptor.resolved
        assert descriptor.memoized_rows(compute) == [(1, 2)]
        assert descriptor.memoized_rows(compute) == [(1, 2)]
        assert len(calls) == 1
        assert descriptor.resolved

    def test_hierarchy_excludes_object(self):
        class Child(SampleCase):
            pass

        descriptor = TestMethodDescriptor(SampleCase.test_add, Child)

        assert descriptor.hierarchy == (Child, SampleCase)

    def test_list_from(self):
        descriptors = TestMethodDescriptor.list_from([SampleCase.test_add, SampleCase.test_plain], SampleCase)

        assert [d.name for d in descriptors] == ["test_add", "test_plain"]
