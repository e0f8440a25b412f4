"""
Caller-facing API.

run_analysis() runs the five-stage pipeline over one essay;
generate_suggestions() turns located issues into ranked, validated
workshop items. Both are synchronous wrappers over their async variants.
"""
from __future__ import annotations
from typing import Iterable, List, Optional
import asyncio
import logging
import random
import time

from essay_workshop.config import WorkshopConfig
from essay_workshop.editops import Locator, WorkshopItem
from essay_workshop.errors import StageFailed, WorkshopError
from essay_workshop.ir import AnalysisInput, AnalysisResult
from essay_workshop.llm.client import ClaudeClient, GenerativeClient, LLMSession
from essay_workshop.rules.load_rules import Library, default_library
from essay_workshop.stages.holistic import analyze_holistic
from essay_workshop.stages.orchestrator import ProgressFn, resolve_essay_type, run_pipeline
from essay_workshop.surgical.context import build_voice_profile
from essay_workshop.surgical.editor import edit_item
from essay_workshop.surgical.locator import prioritize_locators, revalidate

logger = logging.getLogger(__name__)

DEFAULT_ESSAY_SCORE = 50.0


def _session(config: WorkshopConfig, client: Optional[GenerativeClient]) -> LLMSession:
    return LLMSession(client or ClaudeClient(config.llm), config.llm)


async def run_analysis_async(
    essay_text: str,
    essay_type: Optional[str] = None,
    prompt_text: Optional[str] = None,
    max_words: Optional[int] = None,
    *,
    config: Optional[WorkshopConfig] = None,
    client: Optional[GenerativeClient] = None,
    library: Optional[Library] = None,
    progress_callback: Optional[ProgressFn] = None,
) -> AnalysisResult:
    config = config or WorkshopConfig()
    essay = AnalysisInput(
        text=essay_text,
        essay_type=essay_type,
        prompt_text=prompt_text,
        max_words=max_words,
    )
    return await run_pipeline(
        essay, config, _session(config, client), library or default_library(),
        progress_callback=progress_callback,
    )


def run_analysis(
    essay_text: str,
    essay_type: Optional[str] = None,
    prompt_text: Optional[str] = None,
    max_words: Optional[int] = None,
    *,
    config: Optional[WorkshopConfig] = None,
    client: Optional[GenerativeClient] = None,
    library: Optional[Library] = None,
    progress_callback: Optional[ProgressFn] = None,
) -> AnalysisResult:
    """
    Analyze one essay.

    Args:
        essay_text: The essay
        essay_type: Profile id; inferred from prompt and length when omitted
        prompt_text: The essay prompt, if any
        max_words: Word limit, if any
        config: Workshop configuration (defaults apply when omitted)
        client: Generative client; a ClaudeClient is created when omitted
        library: Rule library; the packaged one is used when omitted

    Returns:
        A complete AnalysisResult

    Raises:
        StageFailed: a stage failed after retries
        StructuralError: dimension scoring violated its invariants
    """
    return asyncio.run(run_analysis_async(
        essay_text, essay_type, prompt_text, max_words,
        config=config, client=client, library=library, progress_callback=progress_callback,
    ))


async def generate_suggestions_async(
    text: str,
    locators: Iterable[Locator],
    *,
    analysis: Optional[AnalysisResult] = None,
    config: Optional[WorkshopConfig] = None,
    client: Optional[GenerativeClient] = None,
    library: Optional[Library] = None,
) -> List[WorkshopItem]:
    config = config or WorkshopConfig()
    library = library or default_library()
    session = _session(config, client)
    start_time = time.time()

    selected = prioritize_locators(revalidate(text, locators), config.editor.max_items)
    if not selected:
        logger.info("No locators to workshop")
        return []

    if analysis is not None:
        holistic = analysis.holistic
        essay_score = analysis.insights.aggregate_score
    else:
        essay = AnalysisInput(text=text)
        essay_type = resolve_essay_type(essay, config, library)
        try:
            holistic = await analyze_holistic(essay, essay_type, session)
        except WorkshopError as e:
            logger.error(f"stage1/holistic failed: {e}")
            raise StageFailed("stage1", "holistic", e) from e
        essay_score = DEFAULT_ESSAY_SCORE

    voice = build_voice_profile(text, holistic)
    rng = random.Random(config.editor.seed)
    logger.info(
        f"Workshopping {len(selected)} item(s) at essay score {essay_score} "
        f"(voice {voice.tone}, {voice.cadence})"
    )

    items: List[WorkshopItem] = []
    for locator in selected:
        where = locator.issue_id or repr(locator.quote[:30])
        try:
            item = await edit_item(
                text, locator, voice, holistic, essay_score, library, session, config, rng,
            )
        except WorkshopError as e:
            logger.warning(f"Item {where} failed, skipping: {e}")
            continue
        if item is not None:
            items.append(item)

    logger.info(
        f"Workshop complete in {time.time() - start_time:.1f}s: {len(items)}/{len(selected)} item(s), "
        f"{session.calls} calls, {session.tokens_used} tokens"
    )
    return items


def generate_suggestions(
    text: str,
    locators: Iterable[Locator],
    *,
    analysis: Optional[AnalysisResult] = None,
    config: Optional[WorkshopConfig] = None,
    client: Optional[GenerativeClient] = None,
    library: Optional[Library] = None,
) -> List[WorkshopItem]:
    """
    Generate validated, ranked suggestions for each locator.

    Locators are prioritized and capped at config.editor.max_items. Items
    whose variants never validate, or whose generation fails, are excluded
    and logged; they never abort the others.
    """
    return asyncio.run(generate_suggestions_async(
        text, locators, analysis=analysis, config=config, client=client, library=library,
    ))