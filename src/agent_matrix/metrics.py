"""
Metric samples parsed from scraped exposition text.

The scraper hands back plain lines. Assertions mostly work on those lines
directly (prefix and substring matches), but a line can also be parsed into
a MetricSample with the Prometheus client's text parser. Comment lines
(``# HELP``, ``# TYPE``) carry no sample and are skipped.
"""

from dataclasses import dataclass
from typing import Dict, FrozenSet, Iterable, List, Optional, Tuple

from prometheus_client.parser import text_string_to_metric_families

from .errors import MetricParseError

Series = Tuple[str, FrozenSet[Tuple[str, str]]]


@dataclass(frozen=True)
class MetricSample:
    """One scraped observation: name, label set and value."""

    name: str
    labels: Dict[str, str]
    value: float

    @property
    def series(self) -> Series:
        return (self.name, frozenset(self.labels.items()))

    def __hash__(self) -> int:
        return hash((self.series, self.value))


def is_comment(line: str) -> bool:
    return line.lstrip().startswith("#")


def parse_sample(line: str) -> MetricSample:
    """
    Parse a single exposition line into a MetricSample.

    Raises:
        MetricParseError: If the line is a comment or not a valid sample
    """
    if is_comment(line):
        raise MetricParseError(f"Not a sample line: {line!r}", line=line)

    try:
        samples = [
            sample
            for family in text_string_to_metric_families(line.strip() + "\n")
            for sample in family.samples
        ]
    except (ValueError, IndexError, KeyError) as e:
        raise MetricParseError(f"Malformed metric line {line!r}: {e}", line=line) from e

    if len(samples) != 1:
        raise MetricParseError(
            f"Expected one sample in {line!r}, found {len(samples)}", line=line
        )

    sample = samples[0]
    return MetricSample(name=sample.name, labels=dict(sample.labels), value=float(sample.value))


@dataclass(frozen=True)
class ScrapeResult:
    """Samples of one scrape, in the order they appeared in the response body."""

    samples: Tuple[MetricSample, ...]

    def __len__(self) -> int:
        return len(self.samples)

    def __iter__(self):
        return iter(self.samples)

    def names(self) -> FrozenSet[str]:
        return frozenset(s.name for s in self.samples)

    def series(self) -> FrozenSet[Series]:
        return frozenset(s.series for s in self.samples)

    def duplicates(self) -> List[Series]:
        """Series that appear more than once with an identical label set."""
        seen = set()
        repeated = []
        for sample in self.samples:
            if sample.series in seen and sample.series not in repeated:
                repeated.append(sample.series)
            seen.add(sample.series)
        return repeated

    def find(self, name: str, labels: Optional[Dict[str, str]] = None) -> Optional[MetricSample]:
        """Return the first sample with this name whose labels include ``labels``."""
        wanted = (labels or {}).items()
        for sample in self.samples:
            if sample.name == name and wanted <= sample.labels.items():
                return sample
        return None


def parse_lines(lines: Iterable[str]) -> ScrapeResult:
    """Parse every non-comment line of a scrape."""
    return ScrapeResult(
        samples=tuple(parse_sample(line) for line in lines if line.strip() and not is_comment(line))
    )
