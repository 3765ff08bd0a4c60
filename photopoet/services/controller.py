"""
Purpose:
- Interaction controller: the per-session state machine behind the form UI.
- Sequences upload -> analyze -> generate against the two flows and tracks busy/error state.

Phases:
    Idle --set_photo/clear--> Idle
    Idle/Analyzed/Generated --request_analyze--> Analyzing --ok--> Analyzed
                                                           --fail--> previous phase + error
    Analyzed/Generated --request_generate--> Generating --ok--> Generated
                                                        --fail--> previous phase + error

Notes:
- Every dispatch captures a request id. set_photo()/clear() bump the id, so a late answer
  from a superseded call is dropped instead of overwriting newer state.
- Requests arriving while Analyzing/Generating are ignored (one call in flight per session).
- A successful call does not clear an error recorded while it was in flight.
- Flow failures become one user-facing message; guard failures record the message and raise.
"""

from __future__ import annotations
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..core.errors import InvalidInput, PhotoPoetError, StateError
from ..flows.analyze_photo import analyze_photo
from ..flows.generate_poem import generate_poem, serialize_analysis
from ..flows.schemas import AnalyzePhotoOutput, is_photo_reference
from ..vlm.capability import AICapability
from ..vlm.images import NO_FILE_MESSAGE

logger = logging.getLogger(__name__)

PHOTO_REQUIRED_MESSAGE = "Please upload a photo first."
ANALYSIS_REQUIRED_MESSAGE = "Please analyze the photo first."
ANALYSIS_FAILED_MESSAGE = "Error analyzing photo. Please try again."
GENERATION_FAILED_MESSAGE = "Error generating poem. Please try again."
BAD_REFERENCE_MESSAGE = "Photo must be an image data URI or an http(s) URL."


class Phase(str, Enum):
    IDLE = "idle"
    ANALYZING = "analyzing"
    ANALYZED = "analyzed"
    GENERATING = "generating"
    GENERATED = "generated"


BUSY_PHASES = (Phase.ANALYZING, Phase.GENERATING)


@dataclass
class InteractionState:
    photo: Optional[str] = None
    analysis: Optional[AnalyzePhotoOutput] = None
    poem: Optional[str] = None
    phase: Phase = Phase.IDLE
    error: Optional[str] = None


class StateSnapshot(BaseModel):
    """Read-only view of InteractionState for rendering."""

    model_config = ConfigDict(frozen=True)

    photo: Optional[str] = None
    analysis: Optional[AnalyzePhotoOutput] = None
    poem: Optional[str] = None
    phase: Phase = Phase.IDLE
    error: Optional[str] = None
    tags: List[str] = Field(default_factory=list, description="Objects shown over the photo")
    analysis_text: str = ""
    busy: bool = False


class InteractionController:
    def __init__(self, capability: Optional[AICapability] = None, timeout: Optional[float] = None):
        """
        :param capability: backend passed to both flows (None = configured default)
        :param timeout: per-call timeout passed to both flows (None = settings)
        """
        self._capability = capability
        self._timeout = timeout
        self._state = InteractionState()
        self._request_id = 0

    # ---- request ids ------------------------------------------------------

    def _supersede(self) -> int:
        self._request_id += 1
        return self._request_id

    def _is_current(self, request_id: int) -> bool:
        return request_id == self._request_id

    # ---- synchronous actions ---------------------------------------------

    def set_photo(self, photo: str) -> StateSnapshot:
        """Replace the photo; drops analysis, poem, error and any in-flight call."""
        photo = (photo or "").strip()
        if not photo:
            self._state.error = NO_FILE_MESSAGE
            raise InvalidInput(NO_FILE_MESSAGE)
        if not is_photo_reference(photo):
            self._state.error = BAD_REFERENCE_MESSAGE
            raise InvalidInput(BAD_REFERENCE_MESSAGE)
        self._supersede()
        self._state = InteractionState(photo=photo)
        return self.snapshot()

    def clear(self) -> StateSnapshot:
        self._supersede()
        self._state = InteractionState()
        return self.snapshot()

    def record_error(self, message: str) -> StateSnapshot:
        self._state.error = message
        return self.snapshot()

    def snapshot(self) -> StateSnapshot:
        st = self._state
        return StateSnapshot(
            photo=st.photo,
            analysis=st.analysis.model_copy(deep=True) if st.analysis else None,
            poem=st.poem,
            phase=st.phase,
            error=st.error,
            tags=list(st.analysis.objects) if st.analysis else [],
            analysis_text=serialize_analysis(st.analysis) if st.analysis else "",
            busy=st.phase in BUSY_PHASES,
        )

    @property
    def phase(self) -> Phase:
        return self._state.phase

    # ---- asynchronous actions --------------------------------------------

    async def _dispatch(self, busy_phase: Phase, call: Awaitable, failure_message: str):
        """
        Move to `busy_phase`, await `call`, and return (request_id, result).
        On failure the previous phase is restored and result is None.
        """
        st = self._state
        previous = st.phase
        request_id = self._supersede()
        st.phase = busy_phase
        st.error = None
        try:
            result = await call
        except BaseException as e:
            if self._is_current(request_id):
                st.phase = previous
                if isinstance(e, Exception):
                    st.error = failure_message
            else:
                logger.debug("Dropping failure of superseded request %d: %r", request_id, e)
            if not isinstance(e, PhotoPoetError):
                raise
            logger.info("%s request %d failed: %s", busy_phase.value, request_id, e)
            return request_id, None
        return request_id, result

    async def request_analyze(self) -> StateSnapshot:
        st = self._state
        if st.phase in BUSY_PHASES:
            logger.debug("request_analyze ignored while %s", st.phase.value)
            return self.snapshot()
        if not st.photo:
            st.error = PHOTO_REQUIRED_MESSAGE
            raise InvalidInput(PHOTO_REQUIRED_MESSAGE)

        request_id, result = await self._dispatch(
            Phase.ANALYZING,
            analyze_photo(st.photo, capability=self._capability, timeout=self._timeout),
            ANALYSIS_FAILED_MESSAGE,
        )
        if result is None:
            return self.snapshot()
        if not self._is_current(request_id):
            logger.debug("Dropping stale analysis result for request %d", request_id)
            return self.snapshot()

        st.analysis = result
        st.poem = None
        st.phase = Phase.ANALYZED
        return self.snapshot()

    async def request_generate(self) -> StateSnapshot:
        st = self._state
        if st.phase in BUSY_PHASES:
            logger.debug("request_generate ignored while %s", st.phase.value)
            return self.snapshot()
        if not st.photo:
            st.error = PHOTO_REQUIRED_MESSAGE
            raise InvalidInput(PHOTO_REQUIRED_MESSAGE)
        if st.analysis is None:
            st.error = ANALYSIS_REQUIRED_MESSAGE
            raise StateError(ANALYSIS_REQUIRED_MESSAGE)

        request_id, result = await self._dispatch(
            Phase.GENERATING,
            generate_poem(
                st.photo,
                serialize_analysis(st.analysis),
                capability=self._capability,
                timeout=self._timeout,
            ),
            GENERATION_FAILED_MESSAGE,
        )
        if result is None:
            return self.snapshot()
        if not self._is_current(request_id):
            logger.debug("Dropping stale poem for request %d", request_id)
            return self.snapshot()

        st.poem = result.poem
        st.phase = Phase.GENERATED
        return self.snapshot()
