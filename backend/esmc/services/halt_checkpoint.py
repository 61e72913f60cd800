"""
Proactive Halt Checkpoint (PHC)

Runs the configured detectors over a proposal concurrently, applies fixed
thresholds to their results and decides whether work should stop before it
starts. A halt produces recommendations, an optional error registration and a
deduplicated lesson in the ledger; none of those side effects can change the
decision itself.
"""
import asyncio
import uuid
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

from esmc.components.contracts import (HaltDecision, HaltReason, HaltSeverity,
                                       Precedent, Proposal)
from esmc.components.detectors import (CROSS_SESSION, DETECTOR_NAMES,
                                       ERROR_SIGNATURE, ITERATION,
                                       USER_INTERVENTION, BaseDetector,
                                       default_detectors)
from esmc.core.config import get_settings
from esmc.core.logging_config import LoggingConfig, request_context
from esmc.services.lesson_ledger import LessonLedger

logger = LoggingConfig.get_logger(__name__)

ErrorRegistrar = Callable[[HaltDecision, Proposal], Awaitable[Any]]


def _usable(result: Any) -> bool:
    """A detector result that neither failed nor was skipped"""
    return isinstance(result, dict) and "error" not in result and not result.get("skipped")


class HaltCheckpoint:
    """
    Rule-based halt evaluator

    Thresholds:
    - error match >= error_match_threshold: critical if the signature is critical, else warning
    - iteration count > iteration_threshold: critical if the detector says critical, else warning;
      count >= iteration_hard_limit is always critical
    - precedent similarity >= precedent_threshold: warning
    - user intervention: the detector's own severity
    - any critical reason halts as critical; two or more warnings halt as warning
    - error detected + iteration count > 1 + precedent found halts as warning
    """

    def __init__(
        self,
        detectors: Optional[Dict[str, BaseDetector]] = None,
        ledger: Optional[LessonLedger] = None,
        error_registrar: Optional[ErrorRegistrar] = None,
        auto_lessons: Optional[bool] = None,
        error_match_threshold: Optional[float] = None,
        iteration_threshold: Optional[int] = None,
        iteration_hard_limit: Optional[int] = None,
        precedent_threshold: Optional[float] = None,
    ):
        settings = get_settings()
        self.ledger = ledger or LessonLedger()
        self.error_match_threshold = (
            error_match_threshold if error_match_threshold is not None else settings.error_match_threshold
        )
        self.iteration_threshold = (
            iteration_threshold if iteration_threshold is not None else settings.iteration_threshold
        )
        self.iteration_hard_limit = (
            iteration_hard_limit if iteration_hard_limit is not None else settings.iteration_hard_limit
        )
        self.precedent_threshold = (
            precedent_threshold if precedent_threshold is not None else settings.precedent_threshold
        )
        self.auto_lessons = auto_lessons if auto_lessons is not None else settings.auto_lessons_enabled
        self.error_registrar = error_registrar
        if detectors is None:
            detectors = default_detectors(ledger=self.ledger, iteration_threshold=self.iteration_threshold)
        self.detectors = detectors

    async def _run_detectors(self, proposal: Proposal) -> Dict[str, Any]:
        """Run every available detector concurrently; one failure never cancels the others"""
        results: Dict[str, Any] = {}
        names = []
        tasks = []
        for name in DETECTOR_NAMES:
            detector = self.detectors.get(name)
            if detector is None:
                results[name] = {"skipped": True}
                continue
            names.append(name)
            tasks.append(detector.detect(proposal))

        outcomes = await asyncio.gather(*tasks, return_exceptions=True)

        for name, outcome in zip(names, outcomes):
            if isinstance(outcome, Exception):
                logger.warning(
                    f"Detector {name} failed: {outcome}",
                    extra={"detector": name, "error_type": type(outcome).__name__}
                )
                results[name] = {"error": str(outcome) or type(outcome).__name__}
            elif not isinstance(outcome, dict):
                results[name] = {"error": f"Detector returned {type(outcome).__name__}, expected dict"}
            else:
                results[name] = outcome
        return results

    def _error_reasons(self, result: Dict[str, Any]) -> List[HaltReason]:
        score = float(result.get("match_score") or 0.0)
        if not result.get("detected") or score < self.error_match_threshold:
            return []
        critical = result.get("severity") == HaltSeverity.CRITICAL.value
        signature = result.get("signature") or "unknown"
        return [HaltReason(
            component=ERROR_SIGNATURE,
            severity=HaltSeverity.CRITICAL if critical else HaltSeverity.WARNING,
            message=f"Proposal matches known error signature '{signature}' ({score:.0%})",
            details={"signature": signature, "match_score": score, "note": result.get("message")},
        )]

    def _iteration_reasons(self, result: Dict[str, Any]) -> List[HaltReason]:
        count = int(result.get("count") or 0)
        detector_critical = result.get("severity") == HaltSeverity.CRITICAL.value
        if count >= self.iteration_hard_limit or (count > self.iteration_threshold and detector_critical):
            severity = HaltSeverity.CRITICAL
        elif count > self.iteration_threshold:
            severity = HaltSeverity.WARNING
        else:
            return []
        return [HaltReason(
            component=ITERATION,
            severity=severity,
            message=f"Same topic attempted {count} times",
            details={"count": count, "approach": result.get("approach")},
        )]

    def _precedent_reasons(self, result: Dict[str, Any]) -> List[HaltReason]:
        best = float(result.get("best_similarity") or 0.0)
        if not result.get("found") or best < self.precedent_threshold:
            return []
        return [HaltReason(
            component=CROSS_SESSION,
            severity=HaltSeverity.WARNING,
            message=f"Closely resembles {len(result.get('precedents') or [])} earlier lesson(s)",
            details={"best_similarity": best},
        )]

    def _intervention_reasons(self, result: Dict[str, Any]) -> List[HaltReason]:
        if not result.get("detected"):
            return []
        critical = result.get("severity") == HaltSeverity.CRITICAL.value
        return [HaltReason(
            component=USER_INTERVENTION,
            severity=HaltSeverity.CRITICAL if critical else HaltSeverity.WARNING,
            message="User appears to be intervening",
            details={
                "frustration_score": result.get("frustration_score", 0.0),
                "signals": result.get("signals", []),
            },
        )]

    def _collect_reasons(self, results: Dict[str, Any]) -> List[HaltReason]:
        rules = {
            ERROR_SIGNATURE: self._error_reasons,
            ITERATION: self._iteration_reasons,
            CROSS_SESSION: self._precedent_reasons,
            USER_INTERVENTION: self._intervention_reasons,
        }
        reasons: List[HaltReason] = []
        for name, rule in rules.items():
            result = results.get(name)
            if _usable(result):
                reasons.extend(rule(result))
        return reasons

    @staticmethod
    def _weak_signal(results: Dict[str, Any]) -> bool:
        error = results.get(ERROR_SIGNATURE)
        iteration = results.get(ITERATION)
        precedent = results.get(CROSS_SESSION)
        return (
            _usable(error) and bool(error.get("detected"))
            and _usable(iteration) and int(iteration.get("count") or 0) > 1
            and _usable(precedent) and bool(precedent.get("found"))
        )

    @staticmethod
    def _precedents(results: Dict[str, Any]) -> List[Precedent]:
        result = results.get(CROSS_SESSION)
        if not _usable(result):
            return []
        precedents = []
        for item in result.get("precedents") or []:
            try:
                precedents.append(Precedent.model_validate(item))
            except ValueError as e:
                logger.warning(f"Dropping malformed precedent: {e}")
        return precedents

    @staticmethod
    def _recommendations(decision: HaltDecision) -> List[str]:
        recommendations = []
        for reason in decision.reasons:
            if reason.component == ERROR_SIGNATURE:
                note = reason.details.get("note")
                text = f"Review the known failure '{reason.details.get('signature')}' before continuing"
                recommendations.append(f"{text}: {note}" if note else text)
            elif reason.component == ITERATION:
                recommendations.append(
                    f"Stop repeating approach '{reason.details.get('approach') or 'unnamed'}' "
                    f"and choose a different strategy"
                )
            elif reason.component == USER_INTERVENTION:
                recommendations.append("Pause and confirm the requirements with the user before proceeding")
            elif reason.component == "combined":
                recommendations.append("Several weak signals line up; verify assumptions before continuing")
        if decision.precedents:
            top = decision.precedents[0]
            label = getattr(top, "lesson_id", None) or top.session_id or top.source
            recommendations.append(
                f"Review {len(decision.precedents)} similar precedent(s), starting with {label}"
            )
        return recommendations

    async def _register_error(self, decision: HaltDecision, proposal: Proposal) -> None:
        if self.error_registrar is None:
            return
        try:
            await self.error_registrar(decision, proposal)
        except Exception as e:
            logger.error(f"Error registration failed: {e}", exc_info=True)

    async def _record_lesson(self, decision: HaltDecision, proposal: Proposal) -> Optional[str]:
        if not self.auto_lessons:
            return None
        results = decision.component_results
        intervention = results.get(USER_INTERVENTION)
        iteration = results.get(ITERATION)
        subject = proposal.approach or proposal.description[:80]
        try:
            lesson = await asyncio.to_thread(
                self.ledger.add_lesson,
                lesson=f"PHC halted '{subject}': " + "; ".join(r.message for r in decision.reasons),
                keywords=proposal.keywords,
                severity=decision.severity,
                context=proposal.description,
                components_affected=list(dict.fromkeys(r.component for r in decision.reasons)),
                frustration_score=float(intervention.get("frustration_score", 0.0)) if _usable(intervention) else 0.0,
                repetition_count=int(iteration.get("count", 0)) if _usable(iteration) else 0,
                precedent_count=len(decision.precedents),
                halt_reasons=[r.message for r in decision.reasons],
            )
        except Exception as e:
            logger.error(f"Failed to record lesson: {e}", exc_info=True)
            return None
        return lesson.id if lesson else None

    async def evaluate_halt(self, proposal: Union[Proposal, Dict[str, Any]]) -> HaltDecision:
        """
        Evaluate whether a proposal should halt

        Args:
            proposal: Proposal model or a dict with description/keywords/approach

        Returns:
            HaltDecision, including the formatted dialogue
        """
        if not isinstance(proposal, Proposal):
            proposal = Proposal.model_validate(proposal)

        evaluation_id = str(uuid.uuid4())
        token = request_context.set({**request_context.get({}), "evaluation_id": evaluation_id})
        try:
            results = await self._run_detectors(proposal)
            reasons = self._collect_reasons(results)

            if any(r.severity == HaltSeverity.CRITICAL for r in reasons):
                should_halt, severity = True, HaltSeverity.CRITICAL
            elif sum(1 for r in reasons if r.severity == HaltSeverity.WARNING) >= 2:
                should_halt, severity = True, HaltSeverity.WARNING
            elif self._weak_signal(results):
                should_halt, severity = True, HaltSeverity.WARNING
                reasons.append(HaltReason(
                    component="combined",
                    severity=HaltSeverity.WARNING,
                    message="Known error pattern, repeated attempt and precedent all present",
                    details={},
                ))
            else:
                should_halt, severity = False, HaltSeverity.NONE

            decision = HaltDecision(
                should_halt=should_halt,
                severity=severity,
                reasons=reasons,
                precedents=self._precedents(results),
                component_results=results,
            )

            if should_halt:
                decision.recommendations = self._recommendations(decision)
                logger.warning(
                    f"PHC halt ({severity.value}): {len(reasons)} reason(s)",
                    extra={"severity": severity.value, "reasons": [r.component for r in reasons]}
                )
                await self._register_error(decision, proposal)
                decision.lesson_id = await self._record_lesson(decision, proposal)
            else:
                logger.info("PHC clear, no halt signals")

            decision.dialogue = format_dialogue(decision, proposal)
            return decision
        finally:
            request_context.reset(token)


def format_dialogue(decision: HaltDecision, proposal: Optional[Proposal] = None) -> str:
    """Human-readable rendering of a halt decision"""
    subject = ""
    if proposal is not None:
        subject = proposal.approach or proposal.description

    if not decision.should_halt:
        line = "PHC CHECKPOINT: clear, no halt signals"
        return f"{line} for '{subject}'" if subject else line

    lines = [f"PHC CHECKPOINT: HALT ({decision.severity.value})"]
    if subject:
        lines.append(f"Proposal: {subject}")
    lines.append("Reasons:")
    for reason in decision.reasons:
        lines.append(f"  - [{reason.severity.value}] {reason.component}: {reason.message}")
    if decision.precedents:
        lines.append("Precedents:")
        for precedent in decision.precedents:
            label = getattr(precedent, "lesson_id", None) or precedent.session_id or precedent.source
            lines.append(f"  {precedent.rank}. {label} (similarity {precedent.similarity:.2f})")
    if decision.recommendations:
        lines.append("Recommendations:")
        for recommendation in decision.recommendations:
            lines.append(f"  - {recommendation}")
    if decision.lesson_id:
        lines.append(f"Lesson recorded: {decision.lesson_id}")
    return "\n".join(lines)
