"""
Unit tests for the assertion battery. Scrapes are plain callables here.
"""

import pytest

from agent_matrix.errors import AssertionFailure, ScrapeConnectionError
from agent_matrix.matrix.assertions import (
    DEFAULT_IDENTIFIER,
    IdentifierRule,
    check_build_info_identifier,
    check_build_info_not_unknown,
    check_expected_lines,
    check_positive_value,
    default_battery,
    expected_identifier,
    run_check,
)
from agent_matrix.matrix.scenarios import JAVAAGENT, JAVAAGENT_JAVA6, Scenario


def _scrape_of(text):
    lines = [line for line in text.splitlines() if line.strip()]
    calls = []

    def scrape():
        calls.append(1)
        return list(lines)

    scrape.calls = calls
    return scrape


class TestExpectedIdentifier:
    """Test the variant to build-info identifier mapping."""

    def test_java6_variant(self):
        assert expected_identifier(JAVAAGENT_JAVA6) == '"jmx_prometheus_javaagent_java6"'

    def test_default_variant(self):
        assert expected_identifier(JAVAAGENT) == DEFAULT_IDENTIFIER
        assert expected_identifier("some_other_agent") == DEFAULT_IDENTIFIER

    def test_custom_rules(self):
        rules = [IdentifierRule("_jdk17", '"agent_jdk17"')]

        assert expected_identifier("agent_jdk17", rules) == '"agent_jdk17"'
        assert expected_identifier(JAVAAGENT_JAVA6, rules) == DEFAULT_IDENTIFIER


class TestPositiveValue:
    def test_positive(self, make_exposition):
        check_positive_value(_scrape_of(make_exposition()))

    def test_missing_metric(self):
        with pytest.raises(AssertionFailure, match="not found"):
            check_positive_value(_scrape_of("other_metric 1.0\n"))

    def test_zero_value(self):
        with pytest.raises(AssertionFailure, match="should be > 0"):
            check_positive_value(_scrape_of("java_lang_Memory_NonHeapMemoryUsage_committed 0.0\n"))


class TestExpectedLines:
    def test_order_independent(self, make_exposition):
        """Test that the sda2-before-sda1 serving order still passes."""
        check_expected_lines(_scrape_of(make_exposition()))

    def test_missing_lines_are_listed(self, make_exposition):
        body = "\n".join(
            line for line in make_exposition().splitlines() if "Server_2" not in line
        )

        with pytest.raises(AssertionFailure) as exc_info:
            check_expected_lines(_scrape_of(body))

        message = str(exc_info.value)
        assert message.startswith("Metrics not found: ")
        assert message.count("Server_2") == 2
        assert "Server_1" not in message

    def test_value_is_part_of_prefix(self):
        with pytest.raises(AssertionFailure):
            check_expected_lines(
                _scrape_of('metric{source="/dev/sda1"} 2.0\n'),
                expected=['metric{source="/dev/sda1"} 1.0'],
            )


class TestBuildInfo:
    def test_identifier_matches_variant(self, make_exposition):
        check_build_info_identifier(_scrape_of(make_exposition(JAVAAGENT_JAVA6)), JAVAAGENT_JAVA6)

    def test_quoted_identifier_does_not_match_longer_name(self, make_exposition):
        """Test that java6 output does not satisfy the plain variant."""
        with pytest.raises(AssertionFailure):
            check_build_info_identifier(_scrape_of(make_exposition(JAVAAGENT_JAVA6)), JAVAAGENT)

    def test_identifier_mismatch(self, make_exposition):
        with pytest.raises(AssertionFailure, match="should contain"):
            check_build_info_identifier(_scrape_of(make_exposition(JAVAAGENT)), JAVAAGENT_JAVA6)

    def test_absent_build_info_passes(self):
        check_build_info_identifier(_scrape_of("java_lang_Memory_NonHeapMemoryUsage_committed 1.0\n"), JAVAAGENT)
        check_build_info_not_unknown(_scrape_of("java_lang_Memory_NonHeapMemoryUsage_committed 1.0\n"))

    def test_version_known(self, make_exposition):
        check_build_info_not_unknown(_scrape_of(make_exposition()))

    def test_version_unknown(self, make_exposition):
        with pytest.raises(AssertionFailure, match="unknown"):
            check_build_info_not_unknown(_scrape_of(make_exposition(version="unknown")))


class TestBattery:
    """Test the assembled battery and check outcome recording."""

    scenario = Scenario("openjdk:11-jre", JAVAAGENT)

    def test_default_battery(self):
        names = [check.name for check in default_battery()]

        assert names == ["jvm_metric", "tabular_metric", "build_info_name", "build_info_version"]

    def test_every_check_scrapes_fresh(self, make_exposition):
        scrape = _scrape_of(make_exposition())

        results = [run_check(check, scrape, self.scenario) for check in default_battery()]

        assert all(r.passed for r in results)
        assert len(scrape.calls) == 4

    def test_failed_check_is_recorded(self, make_exposition):
        check = default_battery()[3]

        result = run_check(check, _scrape_of(make_exposition(version="unknown")), self.scenario)

        assert not result.passed
        assert result.error_type == "AssertionFailure"
        assert result.to_dict()["passed"] is False

    def test_scrape_error_fails_the_check(self):
        def scrape():
            raise ScrapeConnectionError("Cannot reach endpoint")

        result = run_check(default_battery()[0], scrape, self.scenario)

        assert not result.passed
        assert result.error_type == "ScrapeConnectionError"
        assert "Cannot reach" in result.message
