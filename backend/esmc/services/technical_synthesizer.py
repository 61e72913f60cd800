"""
Technical synthesizer

Merges four independently produced intelligence fragments into one summary:
    PIU - project intent   (goals)
    DKI - domain knowledge (domains)
    UIP - user intent      (workflow)
    PCA - pattern analysis (patterns)
"""
import json
from typing import Any, Dict, List, Mapping, Union

from esmc.core.exceptions import SynthesisInputError
from esmc.core.logging_config import LoggingConfig
from esmc.utils.datetime_utils import utc_now_iso

logger = LoggingConfig.get_logger(__name__)

Fragment = Union[str, bytes, Mapping[str, Any]]

FRAGMENT_NAMES = ("piu", "dki", "uip", "pca")

SCOPE_BY_COMPLEXITY = {
    "low": "single component, hours",
    "medium": "several components, days",
    "high": "cross-cutting change, weeks",
}


def parse_fragment(name: str, value: Fragment) -> Dict[str, Any]:
    """
    Parse one fragment

    Args:
        name: Fragment name, used in error messages
        value: JSON text or an already parsed mapping

    Raises:
        SynthesisInputError: if the JSON is invalid or not an object
    """
    if isinstance(value, Mapping):
        return dict(value)
    try:
        parsed = json.loads(value)
    except (TypeError, json.JSONDecodeError) as e:
        raise SynthesisInputError(
            f"Invalid JSON in {name.upper()} fragment: {e}",
            details={"fragment": name}
        ) from e
    if not isinstance(parsed, dict):
        raise SynthesisInputError(
            f"{name.upper()} fragment must be a JSON object, got {type(parsed).__name__}",
            details={"fragment": name}
        )
    return parsed


def _as_list(value: Any) -> List[Any]:
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return list(value)
    return [value]


def _label(item: Any) -> str:
    """Items may be plain strings or objects with a name/description"""
    if isinstance(item, Mapping):
        for key in ("name", "description", "goal", "pattern", "title"):
            if item.get(key):
                return str(item[key])
        return json.dumps(item, sort_keys=True)
    return str(item)


def classify_complexity(goal_count: int) -> str:
    if goal_count <= 2:
        return "low"
    if goal_count <= 4:
        return "medium"
    return "high"


def synthesize(piu: Fragment, dki: Fragment, uip: Fragment, pca: Fragment) -> Dict[str, Any]:
    """
    Build the technical summary from the four fragments

    Returns:
        Dict with technical_summary, implementation_approach, complexity,
        estimated_scope and timestamp
    """
    piu_data = parse_fragment("piu", piu)
    dki_data = parse_fragment("dki", dki)
    uip_data = parse_fragment("uip", uip)
    pca_data = parse_fragment("pca", pca)

    goals = _as_list(piu_data.get("goals"))
    domains = _as_list(dki_data.get("domains"))
    patterns = _as_list(pca_data.get("patterns"))

    workflow = uip_data.get("workflow")
    if isinstance(workflow, Mapping):
        workflow_name = workflow.get("name") or "unspecified"
    else:
        workflow_name = workflow or uip_data.get("workflow_name") or "unspecified"

    primary_goal = _label(goals[0]) if goals else "unspecified"
    domain_list = ", ".join(_label(d) for d in domains) or "general"
    primary_pattern = _label(patterns[0]) if patterns else "none identified"
    complexity = classify_complexity(len(goals))

    logger.debug(
        "Synthesized technical summary",
        extra={"goal_count": len(goals), "complexity": complexity}
    )

    return {
        "technical_summary": {
            "primary_goal": primary_goal,
            "domains": domain_list,
            "workflow": str(workflow_name),
            "primary_pattern": primary_pattern,
        },
        "implementation_approach": (
            f"Deliver '{primary_goal}' in the {domain_list} domain(s) "
            f"following the {workflow_name} workflow, applying the {primary_pattern} pattern"
        ),
        "complexity": complexity,
        "estimated_scope": {
            "goal_count": len(goals),
            "domain_count": len(domains),
            "pattern_count": len(patterns),
            "description": SCOPE_BY_COMPLEXITY[complexity],
        },
        "timestamp": utc_now_iso(),
    }
