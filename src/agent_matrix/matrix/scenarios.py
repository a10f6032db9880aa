"""
Scenario table for the compatibility matrix.

Each scenario pairs a runtime image with an agent build variant. The table
is plain data: add a row to cover a new image. A YAML file with the same
shape can replace the built-in table at run time.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Optional

import jsonschema
import yaml

logger = logging.getLogger(__name__)

JAVAAGENT = "jmx_prometheus_javaagent"
JAVAAGENT_JAVA6 = "jmx_prometheus_javaagent_java6"


@dataclass(frozen=True)
class Scenario:
    """One (runtime image, agent variant) pair under test."""

    runtime_image: str
    agent_variant: str

    @property
    def id(self) -> str:
        return f"{self.runtime_image}-{self.agent_variant}"

    def __str__(self) -> str:
        return self.id


SCENARIOS: List[Scenario] = [
    # HotSpot
    Scenario("openjdk:8-jre", JAVAAGENT),
    Scenario("openjdk:8-jre", JAVAAGENT_JAVA6),
    Scenario("openjdk:11-jre", JAVAAGENT_JAVA6),
    Scenario("openjdk:11-jre", JAVAAGENT),
    Scenario("openjdk:17-oracle", JAVAAGENT_JAVA6),
    Scenario("openjdk:17-oracle", JAVAAGENT),
    Scenario("ticketfly/java:6", JAVAAGENT_JAVA6),
    Scenario("openjdk:7", JAVAAGENT_JAVA6),
    Scenario("openjdk:7", JAVAAGENT),
    # OpenJ9
    Scenario("ibmjava:8-jre", JAVAAGENT_JAVA6),
    Scenario("ibmjava:8-jre", JAVAAGENT),
    Scenario("ibmjava:11", JAVAAGENT_JAVA6),
    Scenario("ibmjava:11", JAVAAGENT),
    Scenario("adoptopenjdk/openjdk11-openj9", JAVAAGENT_JAVA6),
    Scenario("adoptopenjdk/openjdk11-openj9", JAVAAGENT),
]

MATRIX_SCHEMA = {
    "type": "object",
    "properties": {
        "scenarios": {
            "type": "array",
            "minItems": 1,
            "items": {
                "type": "object",
                "properties": {
                    "image": {"type": "string", "minLength": 1},
                    "variant": {"type": "string", "minLength": 1},
                },
                "required": ["image", "variant"],
                "additionalProperties": False,
            },
        }
    },
    "required": ["scenarios"],
    "additionalProperties": False,
}


class MatrixFileError(ValueError):
    """Exception raised when a matrix file cannot be loaded."""

    pass


def load_matrix(path: Path) -> List[Scenario]:
    """
    Load a scenario table from a YAML file.

    The file holds a ``scenarios`` list of ``{image, variant}`` mappings.

    Raises:
        MatrixFileError: If the file is missing, not YAML or fails validation
    """
    path = Path(path)
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except OSError as e:
        raise MatrixFileError(f"Cannot read matrix file {path}: {e}") from e
    except yaml.YAMLError as e:
        raise MatrixFileError(f"Invalid YAML in matrix file {path}: {e}") from e

    try:
        jsonschema.validate(data, MATRIX_SCHEMA)
    except jsonschema.ValidationError as e:
        raise MatrixFileError(f"Invalid matrix file {path}: {e.message}") from e

    scenarios = [Scenario(row["image"], row["variant"]) for row in data["scenarios"]]
    logger.info(f"Loaded {len(scenarios)} scenarios from {path}")
    return scenarios


def select(
    scenarios: Iterable[Scenario],
    image: Optional[str] = None,
    variant: Optional[str] = None,
) -> List[Scenario]:
    """Filter scenarios by image substring and exact agent variant id."""
    selected = []
    for scenario in scenarios:
        if image and image not in scenario.runtime_image:
            continue
        if variant and variant != scenario.agent_variant:
            continue
        selected.append(scenario)
    return selected
