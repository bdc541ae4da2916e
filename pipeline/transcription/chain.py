import time
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import requests
from PIL import Image

from infra.config import Config
from infra.errors import FolioError, InvalidArgumentError, InvalidStateError, ServiceError
from infra.llm.openrouter import MalformedResponseError
from infra.logger import PipelineLogger, null_logger
from infra.storage.schemas import Page, PromptOverrides

from .prompts import (
    DEFAULT_PROMPTS,
    PREVIOUS_SUMMARY_HEADER,
    PREVIOUS_TRANSCRIPTION_HEADER,
    PREVIOUS_TRANSLATION_HEADER,
    TEXT_TO_TRANSLATE_HEADER,
    TRANSLATED_TEXT_HEADER,
)

STAGES = ("ocr", "translation", "summary")


@dataclass
class StageOutput:
    stage: str
    text: str
    model: str
    cost_usd: float = 0.0
    usage: Dict[str, Any] = field(default_factory=dict)
    time_seconds: float = 0.0


@dataclass
class PreviousPageContext:
    """Stage outputs of the page before the one being processed."""
    ocr: Optional[str] = None
    translation: Optional[str] = None
    summary: Optional[str] = None

    @classmethod
    def from_page(cls, page: Optional[Page]) -> "PreviousPageContext":
        if page is None:
            return cls()
        return cls(
            ocr=page.ocr.text if page.ocr else None,
            translation=page.translation.text if page.translation else None,
            summary=page.summary.text if page.summary else None,
        )


@dataclass
class ProcessResult:
    ocr: Optional[StageOutput] = None
    translation: Optional[StageOutput] = None
    summary: Optional[StageOutput] = None
    error: Optional[FolioError] = None
    failed_stage: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.error is None and all(getattr(self, stage) is not None for stage in STAGES)

    @property
    def completed_stages(self):
        return [stage for stage in STAGES if getattr(self, stage) is not None]


def fill_placeholders(template: str, **values: Optional[str]) -> str:
    """Replace every ``{name}`` occurrence; unknown braces are left alone."""
    for name, value in values.items():
        if value is not None:
            template = template.replace("{" + name + "}", value)
    return template


def truncate_context(text: str, limit: int) -> str:
    if len(text) <= limit:
        return text
    return text[:limit] + "..."


def _present(text: Optional[str]) -> bool:
    return bool(text and text.strip())


class ChainedTranscriptionPipeline:
    """
    Transcribe -> translate -> summarize for one page.

    Each stage may be seeded with the same stage's output from the previous
    page (cross-page context), and within ``process_all`` each stage consumes
    the output this call just produced for the stage before it.
    """

    def __init__(
        self,
        client,
        vision_model: Optional[str] = None,
        text_model: Optional[str] = None,
        context_chars: Optional[int] = None,
        timeout: Optional[int] = None,
        logger: Optional[PipelineLogger] = None,
    ):
        self.client = client
        self.vision_model = vision_model or Config.vision_model
        self.text_model = text_model or Config.text_model
        self.context_chars = context_chars or Config.context_chars
        self.timeout = timeout or Config.request_timeout
        self.logger = logger or null_logger("transcription")

        if self.context_chars <= 0:
            raise InvalidArgumentError("context_chars must be positive")

    # ----- prompts -----

    def _context_block(self, header: str, text: Optional[str]) -> str:
        if not _present(text):
            return ""
        return f"\n\n{header}\n{truncate_context(text, self.context_chars)}"

    def build_transcription_prompt(
        self,
        source_language: str,
        previous_transcription: Optional[str] = None,
        prompt_override: Optional[str] = None,
    ) -> str:
        template = prompt_override if _present(prompt_override) else DEFAULT_PROMPTS["ocr"]
        prompt = fill_placeholders(template, language=source_language, source_language=source_language)
        return prompt + self._context_block(PREVIOUS_TRANSCRIPTION_HEADER, previous_transcription)

    def build_translation_prompt(
        self,
        transcription: str,
        source_language: str,
        target_language: str,
        previous_translation: Optional[str] = None,
        prompt_override: Optional[str] = None,
    ) -> str:
        template = prompt_override if _present(prompt_override) else DEFAULT_PROMPTS["translation"]
        prompt = fill_placeholders(
            template,
            language=source_language,
            source_language=source_language,
            target_language=target_language,
        )
        prompt += f"\n\n{TEXT_TO_TRANSLATE_HEADER}\n{transcription}"
        return prompt + self._context_block(PREVIOUS_TRANSLATION_HEADER, previous_translation)

    def build_summary_prompt(
        self,
        translation: str,
        previous_summary: Optional[str] = None,
        prompt_override: Optional[str] = None,
        target_language: Optional[str] = None,
    ) -> str:
        template = prompt_override if _present(prompt_override) else DEFAULT_PROMPTS["summary"]
        prompt = fill_placeholders(template, language=target_language, target_language=target_language)
        prompt += f"\n\n{TRANSLATED_TEXT_HEADER}\n{translation}"
        return prompt + self._context_block(PREVIOUS_SUMMARY_HEADER, previous_summary)

    # ----- stages -----

    def _call(self, stage: str, model: str, prompt: str, image: Optional[Image.Image] = None) -> StageOutput:
        start_time = time.time()
        try:
            text, usage, cost = self.client.call(
                model,
                [{"role": "user", "content": prompt}],
                timeout=self.timeout,
                images=[image] if image is not None else None,
            )
        except (requests.exceptions.RequestException, MalformedResponseError) as e:
            raise ServiceError(f"{stage} call failed: {e}") from e
        elapsed = time.time() - start_time

        if not _present(text):
            raise ServiceError(f"{stage} call returned an empty response")

        usage = usage or {}
        self.logger.info(
            f"{stage} complete ({len(text)} chars)",
            stage=stage,
            cost_usd=cost,
            tokens=usage.get("completion_tokens"),
            duration_seconds=elapsed,
        )

        return StageOutput(
            stage=stage,
            text=text.strip(),
            model=model,
            cost_usd=cost,
            usage=usage,
            time_seconds=elapsed,
        )

    def transcribe(
        self,
        image: Image.Image,
        source_language: str,
        previous_transcription: Optional[str] = None,
        prompt_override: Optional[str] = None,
    ) -> StageOutput:
        if image is None:
            raise InvalidArgumentError("Transcription needs a page image")

        prompt = self.build_transcription_prompt(source_language, previous_transcription, prompt_override)
        return self._call("ocr", self.vision_model, prompt, image=image)

    def translate(
        self,
        transcription: str,
        source_language: str,
        target_language: str,
        previous_translation: Optional[str] = None,
        prompt_override: Optional[str] = None,
    ) -> StageOutput:
        if not _present(transcription):
            raise InvalidStateError("Translation needs a transcription; run OCR first")

        prompt = self.build_translation_prompt(
            transcription, source_language, target_language, previous_translation, prompt_override
        )
        return self._call("translation", self.text_model, prompt)

    def summarize(
        self,
        translation: str,
        previous_summary: Optional[str] = None,
        prompt_override: Optional[str] = None,
        target_language: Optional[str] = None,
    ) -> StageOutput:
        if not _present(translation):
            raise InvalidStateError("Summary needs a translation; run translation first")

        prompt = self.build_summary_prompt(translation, previous_summary, prompt_override, target_language)
        return self._call("summary", self.text_model, prompt)

    def process_all(
        self,
        image: Image.Image,
        source_language: str,
        target_language: str,
        previous: Optional[PreviousPageContext] = None,
        prompt_overrides: Optional[PromptOverrides] = None,
    ) -> ProcessResult:
        """
        Run all three stages in order.

        Stops at the first failing stage and returns what completed plus the
        error; it never raises for a stage failure.
        """
        previous = previous or PreviousPageContext()
        overrides = prompt_overrides or PromptOverrides()
        result = ProcessResult()

        try:
            result.ocr = self.transcribe(
                image, source_language, previous.ocr, overrides.for_stage("ocr")
            )
            result.translation = self.translate(
                result.ocr.text,
                source_language,
                target_language,
                previous.translation,
                overrides.for_stage("translation"),
            )
            result.summary = self.summarize(
                result.translation.text,
                previous.summary,
                overrides.for_stage("summary"),
                target_language=target_language,
            )
        except FolioError as e:
            result.error = e
            result.failed_stage = next(stage for stage in STAGES if getattr(result, stage) is None)
            self.logger.warning(
                f"process_all stopped at {result.failed_stage}: {e}",
                stage=result.failed_stage,
                error=str(e),
            )

        return result
