"""
Tests for the technical synthesizer
"""
import json

import pytest

from esmc.core.exceptions import SynthesisInputError
from esmc.services.technical_synthesizer import (classify_complexity,
                                                 parse_fragment, synthesize)

PIU = {"goals": ["Add OAuth login", {"name": "Audit sessions"}]}
DKI = {"domains": ["auth", "web"]}
UIP = {"workflow": {"name": "tdd"}}
PCA = {"patterns": [{"pattern": "middleware"}, "adapter"]}


class TestSynthesize:
    """Merging the four fragments"""

    def test_full_summary(self):
        result = synthesize(json.dumps(PIU), json.dumps(DKI), json.dumps(UIP), json.dumps(PCA))

        assert result["technical_summary"] == {
            "primary_goal": "Add OAuth login",
            "domains": "auth, web",
            "workflow": "tdd",
            "primary_pattern": "middleware",
        }
        assert result["complexity"] == "low"
        assert result["estimated_scope"]["goal_count"] == 2
        assert result["estimated_scope"]["domain_count"] == 2
        assert result["estimated_scope"]["pattern_count"] == 2
        assert "Add OAuth login" in result["implementation_approach"]
        assert result["timestamp"]

    def test_accepts_parsed_mappings(self):
        result = synthesize(PIU, DKI, {"workflow": "kanban"}, PCA)

        assert result["technical_summary"]["workflow"] == "kanban"

    def test_empty_fragments_use_defaults(self):
        result = synthesize("{}", "{}", "{}", "{}")

        assert result["technical_summary"] == {
            "primary_goal": "unspecified",
            "domains": "general",
            "workflow": "unspecified",
            "primary_pattern": "none identified",
        }
        assert result["complexity"] == "low"

    def test_workflow_name_fallback(self):
        result = synthesize({}, {}, {"workflow_name": "scrum"}, {})

        assert result["technical_summary"]["workflow"] == "scrum"

    def test_many_goals_are_high_complexity(self):
        piu = {"goals": [f"goal {i}" for i in range(6)]}

        result = synthesize(piu, DKI, UIP, PCA)

        assert result["complexity"] == "high"
        assert result["estimated_scope"]["description"] == "cross-cutting change, weeks"


class TestParseFragment:
    """Fragment validation"""

    def test_invalid_json_names_the_fragment(self):
        with pytest.raises(SynthesisInputError) as exc_info:
            parse_fragment("dki", "{broken")

        assert exc_info.value.message.startswith("Invalid JSON in DKI fragment")
        assert exc_info.value.details == {"fragment": "dki"}

    def test_non_object_rejected(self):
        with pytest.raises(SynthesisInputError):
            parse_fragment("pca", "[1, 2]")

    def test_synthesis_error_is_a_value_error(self):
        with pytest.raises(ValueError):
            synthesize("{}", "{}", "not json", "{}")


@pytest.mark.parametrize("count,expected", [(0, "low"), (2, "low"), (3, "medium"), (4, "medium"), (5, "high")])
def test_classify_complexity(count, expected):
    assert classify_complexity(count) == expected
