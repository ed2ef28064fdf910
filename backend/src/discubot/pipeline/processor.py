"""
Discussion processor.

Drives one discussion from webhook payload to Notion tasks:

    validation -> dedup -> config -> discussion + job -> thread
    -> AI analysis -> (bootstrap short-circuit) -> task creation
    -> task records -> notification -> finalize

Every stage reads and writes a ProcessingContext. Repositories, the
analyzer, the Notion client and the adapter factory are injected, so the
processor holds no per-request state of its own.

Writes go through the injected session and are flushed, not committed.
The caller commits, including after a ProcessingError, so that failed
discussions and jobs stay visible.
"""

import logging
import time
import traceback
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Optional

from sqlalchemy.orm import Session

from discubot.adapters import get_adapter
from discubot.adapters.base import DiscussionSourceAdapter
from discubot.ai.analyzer import AIAnalyzer, create_analyzer
from discubot.config import settings
from discubot.db.repositories import (
    DiscussionRepository,
    FlowInputRepository,
    FlowOutputRepository,
    FlowRepository,
    SourceConfigRepository,
    SyncJobRepository,
    TaskRepository,
    UserMappingRepository,
)
from discubot.exceptions import ProcessingError
from discubot.models.parsed import (
    AISummary,
    AnalysisResult,
    DetectedTask,
    NotionTaskResult,
    ParsedDiscussion,
    ProcessingOptions,
    ProcessingResult,
    TaskDetection,
)
from discubot.pipeline.bootstrap import (
    BootstrapDetector,
    BootstrapResult,
    is_likely_bootstrap,
    store_discovered_users,
)
from discubot.pipeline.config_resolver import select_config_resolver
from discubot.pipeline.context import ProcessingContext
from discubot.pipeline.routing import route_task_to_outputs
from discubot.pipeline.thread_builder import (
    ThreadBuilder,
    bot_identity,
    build_identity_map,
)
from discubot.services.notion import (
    NotionTaskConfig,
    NotionTaskCreator,
    SourceMetadata,
    create_notion_config_from_output,
)
from discubot.services.reply_generator import (
    generate_bootstrap_message,
    generate_reply_message,
)
from discubot.utils.retry import RetryConfig, retry_with_backoff

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = (
    "source_type",
    "source_thread_id",
    "source_url",
    "team_id",
    "author_handle",
    "title",
    "content",
)

PROCESSING_REACTION = "eyes"

# A created Notion page and the detected task it came from
CreatedTask = tuple[NotionTaskResult, DetectedTask]


def validate_parsed_discussion(parsed: ParsedDiscussion) -> None:
    """
    Check that every required field is present.

    Raises:
        ProcessingError: Listing the missing fields (stage validation, not retryable)
    """
    missing = [name for name in REQUIRED_FIELDS if not getattr(parsed, name, None)]
    if missing:
        raise ProcessingError(
            f"Missing required fields: {', '.join(missing)}",
            "validation",
            {"missing": missing},
            retryable=False,
        )


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class ProcessorRepositories:
    """Repositories the processor reads and writes through."""

    discussions: DiscussionRepository
    sync_jobs: SyncJobRepository
    tasks: TaskRepository
    user_mappings: UserMappingRepository
    flows: FlowRepository
    flow_inputs: FlowInputRepository
    flow_outputs: FlowOutputRepository
    source_configs: SourceConfigRepository

    @classmethod
    def from_session(cls, session: Session) -> "ProcessorRepositories":
        return cls(
            discussions=DiscussionRepository(session),
            sync_jobs=SyncJobRepository(session),
            tasks=TaskRepository(session),
            user_mappings=UserMappingRepository(session),
            flows=FlowRepository(session),
            flow_inputs=FlowInputRepository(session),
            flow_outputs=FlowOutputRepository(session),
            source_configs=SourceConfigRepository(session),
        )


class DiscussionProcessor:
    """Turns parsed discussions into Notion tasks."""

    def __init__(
        self,
        repos: ProcessorRepositories,
        analyzer: Optional[AIAnalyzer] = None,
        task_creator: Optional[NotionTaskCreator] = None,
        adapter_factory: Callable[[str], DiscussionSourceAdapter] = get_adapter,
        bootstrap_detector: Optional[BootstrapDetector] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.repos = repos
        self._analyzer = analyzer
        self._task_creator = task_creator
        self.adapter_factory = adapter_factory
        self.bootstrap_detector = bootstrap_detector or BootstrapDetector()
        self._sleep = sleep

    @property
    def analyzer(self) -> AIAnalyzer:
        if self._analyzer is None:
            self._analyzer = create_analyzer()
        return self._analyzer

    @property
    def task_creator(self) -> NotionTaskCreator:
        if self._task_creator is None:
            self._task_creator = NotionTaskCreator()
        return self._task_creator

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    def process(
        self,
        parsed: ParsedDiscussion,
        options: Optional[ProcessingOptions] = None,
    ) -> ProcessingResult:
        """
        Process one discussion end to end.

        Args:
            parsed: Discussion from a webhook parser
            options: skip_ai / skip_notion switches and an optional pre-built thread

        Returns:
            ProcessingResult; cached=True when the thread was already processed

        Raises:
            ProcessingError: On any failure. Once the discussion row exists,
                it is marked failed before the error is raised.
        """
        ctx = ProcessingContext(parsed=parsed, options=options or ProcessingOptions())
        logger.info(
            f"Processing {parsed.source_type} discussion {parsed.source_thread_id} "
            f"(skip_ai={ctx.options.skip_ai}, skip_notion={ctx.options.skip_notion})"
        )

        validate_parsed_discussion(parsed)

        cached = self._check_existing(ctx)
        if cached is not None:
            return cached

        resolver = select_config_resolver(
            parsed.source_type,
            self.repos.flow_inputs,
            self.repos.flows,
            self.repos.flow_outputs,
            self.repos.source_configs,
        )
        ctx.config = resolver.resolve(parsed.team_id, parsed.source_type, parsed.metadata)
        ctx.discussion_id = self._save_discussion(ctx)
        ctx.adapter = self.adapter_factory(parsed.source_type)

        try:
            return self._run(ctx)
        except Exception as e:
            error = self._fail(ctx, e)
            if error is e:
                raise
            raise error from e
        finally:
            # Each run gets its own adapter from the factory
            ctx.adapter.close()

    def process_discussion_by_id(
        self,
        discussion_id: uuid.UUID,
        options: Optional[ProcessingOptions] = None,
    ) -> ProcessingResult:
        """Re-run a stored discussion from its raw payload."""
        parsed = self._load_payload(discussion_id)
        return self.process(parsed, options)

    def retry_failed_discussion(
        self,
        discussion_id: uuid.UUID,
        options: Optional[ProcessingOptions] = None,
    ) -> ProcessingResult:
        """
        Reprocess a failed discussion with exponential backoff.

        The stored payload is loaded once. Each attempt replaces the failed
        row, so later attempts work from the payload, not the old id.

        Raises:
            ProcessingError: If the discussion is missing, not failed, or
                every attempt fails
        """
        discussion = self.repos.discussions.get(discussion_id)
        if discussion is not None and discussion.status != "failed":
            raise ProcessingError(
                f"Discussion {discussion_id} is not failed (status: {discussion.status})",
                "validation",
                {"discussionId": str(discussion_id), "status": discussion.status},
                retryable=False,
            )
        parsed = self._load_payload(discussion_id)
        logger.info(f"Retrying failed discussion {discussion_id}")

        config = RetryConfig(
            max_attempts=settings.retry_max_attempts,
            base_delay=settings.retry_base_delay,
            max_delay=settings.retry_max_delay,
        )
        return retry_with_backoff(
            lambda: self.process(parsed, options), config, sleep=self._sleep
        )

    def _load_payload(self, discussion_id: uuid.UUID) -> ParsedDiscussion:
        discussion = self.repos.discussions.get(discussion_id)
        if discussion is None:
            raise ProcessingError(
                f"Discussion not found: {discussion_id}",
                "validation",
                {"discussionId": str(discussion_id)},
                retryable=False,
            )
        if not discussion.raw_payload:
            raise ProcessingError(
                f"Discussion {discussion_id} has no stored payload",
                "validation",
                {"discussionId": str(discussion_id)},
                retryable=False,
            )
        return ParsedDiscussion.from_dict(discussion.raw_payload)

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    def _check_existing(self, ctx: ProcessingContext) -> Optional[ProcessingResult]:
        """Return a cached result for an already processed thread.

        Failed rows and bootstrap comments are deleted so they can be
        processed again.
        """
        # Lookup, not a lock: concurrent deliveries of one thread can both pass
        existing = self.repos.discussions.get_by_source_thread_id(ctx.parsed.source_thread_id)
        if existing is None:
            return None

        if existing.status != "failed" and not is_likely_bootstrap(ctx.parsed.content):
            logger.info(
                f"Discussion {existing.id} already exists for thread "
                f"{ctx.parsed.source_thread_id} (status: {existing.status}), skipping"
            )
            return ProcessingResult(
                discussion_id=str(existing.id),
                thread=None,
                ai_analysis=AnalysisResult(
                    summary=AISummary(summary="Already processed"),
                    task_detection=TaskDetection(is_multi_task=False),
                ),
                notion_tasks=[],
                processing_time_ms=0,
                job_id=str(existing.sync_job_id) if existing.sync_job_id else None,
                cached=True,
            )

        logger.info(
            f"Deleting {existing.status} discussion {existing.id} to reprocess thread "
            f"{ctx.parsed.source_thread_id}"
        )
        self.repos.discussions.delete(existing.id)
        return None

    def _save_discussion(self, ctx: ProcessingContext) -> uuid.UUID:
        parsed = ctx.parsed
        try:
            discussion = self.repos.discussions.create(
                team_id=ctx.team_id,
                source_type=parsed.source_type,
                source_thread_id=parsed.source_thread_id,
                source_url=parsed.source_url,
                source_config_id=ctx.config.source_config_id,
                title=parsed.title,
                content=parsed.content,
                author_handle=parsed.author_handle,
                participants=list(parsed.participants),
                status="pending",
                raw_payload=parsed.to_dict(),
                extra_metadata=dict(parsed.metadata),
            )
        except Exception as e:
            logger.error(f"Failed to create discussion record: {e}", exc_info=True)
            raise ProcessingError(
                "Failed to create discussion record",
                "save_discussion",
                {"error": str(e)},
                retryable=False,
            ) from e

        logger.info(f"Created discussion {discussion.id} for team {ctx.team_id}")
        return discussion.id

    def _run(self, ctx: ProcessingContext) -> ProcessingResult:
        parsed = ctx.parsed
        config = ctx.config

        self._post_status(ctx, "pending")

        mappings = self.repos.user_mappings.get_active_for_workspace(
            config.team_id, parsed.source_type, config.workspace_id
        )
        ctx.identities = build_identity_map(mappings)
        logger.debug(f"Loaded {len(mappings)} user mapping(s) for workspace {config.workspace_id}")

        ctx.job_id = self._start_job(ctx)
        self._update_discussion(ctx, "update_status", status="processing", sync_job_id=ctx.job_id)

        # Thread building
        ctx.thread, ctx.identities = ThreadBuilder(ctx.adapter).build(
            parsed.source_type,
            ctx.source_thread_id,
            config.adapter_config,
            ctx.identities,
            thread=ctx.options.thread,
        )
        self._apply_figma_thread_id(ctx)
        self._update_discussion(
            ctx,
            "update_metadata",
            author_handle=ctx.thread.root_message.author_handle or parsed.author_handle,
            participants=list(ctx.thread.participants),
            source_thread_id=ctx.source_thread_id,
            source_url=ctx.source_url,
        )

        # AI analysis
        self._update_job_stage(ctx, "ai_analysis")
        ctx.analysis = self._analyze(ctx)
        self._update_discussion(ctx, "update_status", status="analyzed")
        self._update_job_stage(ctx, "task_creation")

        bootstrap = self.bootstrap_detector.detect(
            ctx.thread,
            parsed.source_type,
            raw_content=parsed.content,
            bot=bot_identity(config.adapter_config),
        )
        if bootstrap.is_bootstrap:
            return self._finish_bootstrap(ctx, bootstrap)

        created: list[CreatedTask] = []
        if config.ai_enabled and not ctx.options.skip_notion:
            created = self._create_tasks(ctx)
            self._save_task_records(ctx, created)
        else:
            logger.info("Skipping Notion task creation")

        return self._finalize(ctx, created)

    def _apply_figma_thread_id(self, ctx: ProcessingContext) -> None:
        """Figma threads are stored as fileKey:commentId once the comment is known."""
        if ctx.source_type != "figma":
            return
        file_key = ctx.parsed.metadata.get("fileKey")
        if not ctx.thread.id or not file_key:
            return
        ctx.source_thread_id = f"{file_key}:{ctx.thread.id}"
        ctx.source_url = f"https://www.figma.com/file/{file_key}#{ctx.thread.id}"
        logger.debug(f"Figma thread id resolved to {ctx.source_thread_id}")
        # The pending reaction could not target the comment before
        self._post_status(ctx, "pending")

    def _analyze(self, ctx: ProcessingContext) -> AnalysisResult:
        config = ctx.config
        if ctx.options.skip_ai or not config.ai_enabled:
            logger.info("AI analysis skipped, using the discussion as a single task")
            return AnalysisResult(
                summary=AISummary(summary="Mock summary", key_points=["Mock point 1"]),
                task_detection=TaskDetection(
                    is_multi_task=False,
                    tasks=[DetectedTask(title=ctx.parsed.title, description=ctx.parsed.content)],
                ),
            )

        return self.analyzer.analyze(
            ctx.thread,
            source_type=ctx.source_type,
            custom_summary_prompt=config.summary_prompt,
            custom_task_prompt=config.task_prompt,
            available_domains=config.available_domains or None,
            api_key=config.anthropic_api_key,
        )

    def _finish_bootstrap(
        self, ctx: ProcessingContext, bootstrap: BootstrapResult
    ) -> ProcessingResult:
        config = ctx.config
        created_count = store_discovered_users(
            self.repos.user_mappings,
            bootstrap.mentioned_users,
            config.team_id,
            ctx.source_type,
            config.workspace_id,
        )
        self._update_discussion(
            ctx,
            "update_results",
            status="completed",
            thread_data=ctx.thread.to_dict(),
            total_messages=len(ctx.thread.messages),
            ai_summary=ctx.analysis.summary.summary,
            ai_key_points=list(ctx.analysis.summary.key_points),
            processed_at=_utc_now(),
        )

        message = generate_bootstrap_message(
            len(bootstrap.mentioned_users),
            config.reply_personality,
            config.anthropic_api_key,
            config.personality_icon,
        )
        self._notify(ctx, message)

        processing_time_ms = ctx.elapsed_ms
        self._complete_job(
            ctx,
            processing_time_ms,
            task_ids=[],
            metadata={
                "isBootstrap": True,
                "bootstrapReason": bootstrap.reason,
                "mentionedUsers": bootstrap.users_as_dicts(),
                "mappingsCreated": created_count,
            },
        )
        logger.info(
            f"Bootstrap discussion {ctx.discussion_id} completed: "
            f"{len(bootstrap.mentioned_users)} user(s), {created_count} new mapping(s)"
        )
        return self._result(ctx, [], processing_time_ms, is_bootstrap=True)

    def _source_metadata(self, ctx: ProcessingContext) -> SourceMetadata:
        parsed = ctx.parsed
        source_metadata = ctx.config.source_metadata
        if ctx.source_type == "figma":
            return SourceMetadata("figma", file_key=parsed.metadata.get("fileKey"))
        if ctx.source_type == "slack":
            return SourceMetadata(
                "slack",
                channel_id=(
                    source_metadata.get("channelId")
                    or parsed.metadata.get("channelId")
                    or ctx.source_thread_id.partition(":")[0]
                ),
                slack_team_id=source_metadata.get("slackTeamId") or parsed.team_id,
            )
        if ctx.source_type == "notion":
            return SourceMetadata(
                "notion",
                page_id=parsed.metadata.get("parentId") or parsed.metadata.get("pageId"),
            )
        return SourceMetadata(ctx.source_type)

    def _user_lookups(self, ctx: ProcessingContext) -> tuple[dict[str, str], dict[str, str]]:
        """Source user id -> Notion id, plus names for AI-written assignees."""
        mentions = {
            user_id: identity.notion_id
            for user_id, identity in ctx.identities.items()
            if identity.notion_id
        }
        assignees = dict(mentions)
        for identity in ctx.identities.values():
            if identity.notion_id:
                assignees.setdefault(identity.name, identity.notion_id)
        return mentions, assignees

    def _create_tasks(self, ctx: ProcessingContext) -> list[CreatedTask]:
        config = ctx.config
        tasks = ctx.analysis.task_detection.tasks
        if not tasks:
            logger.info("No tasks detected, nothing to create")
            return []

        summary = ctx.analysis.summary
        source_metadata = self._source_metadata(ctx)
        user_mentions, user_mappings = self._user_lookups(ctx)
        created: list[CreatedTask] = []

        if config.is_flow:
            for task in tasks:
                for output in route_task_to_outputs(task, config.outputs):
                    if output.output_type != "notion":
                        logger.warning(
                            f"Skipping output {output.name}: unsupported type {output.output_type}"
                        )
                        continue
                    try:
                        notion_config = create_notion_config_from_output(
                            output, ctx.source_type, ctx.source_url
                        )
                        result = self.task_creator.create_task(
                            task,
                            ctx.thread,
                            summary,
                            notion_config,
                            user_mentions,
                            user_mappings,
                            source_metadata,
                        )
                    except Exception as e:
                        logger.error(
                            f"Failed to create task '{task.title}' in output {output.name}: {e}",
                            exc_info=True,
                        )
                        continue
                    created.append((result, task))
            logger.info(f"Created {len(created)} Notion task(s) across flow outputs")
            return created

        legacy = config.legacy_config
        notion_config = NotionTaskConfig(
            database_id=legacy.notion_database_id or "",
            api_key=legacy.notion_token or "",
            source_type=ctx.source_type,
            source_url=ctx.source_url,
            field_mapping=legacy.notion_field_mapping or {},
        )
        if len(tasks) == 1:
            results = [
                self.task_creator.create_task(
                    tasks[0],
                    ctx.thread,
                    summary,
                    notion_config,
                    user_mentions,
                    user_mappings,
                    source_metadata,
                )
            ]
        else:
            results = self.task_creator.create_tasks(
                tasks,
                ctx.thread,
                summary,
                notion_config,
                user_mentions,
                user_mappings,
                source_metadata,
            )
        return list(zip(results, tasks))

    def _save_task_records(self, ctx: ProcessingContext, created: list[CreatedTask]) -> None:
        if not created:
            return
        is_multi = len(created) > 1
        saved = 0
        for index, (result, task) in enumerate(created):
            try:
                self.repos.tasks.create(
                    team_id=ctx.team_id,
                    discussion_id=ctx.discussion_id,
                    sync_job_id=ctx.job_id,
                    notion_page_id=result.id,
                    notion_page_url=result.url,
                    title=task.title,
                    description=task.description,
                    status="todo",
                    priority=task.priority,
                    assignee=task.assignee,
                    summary=task.description,
                    is_multi_task_child=is_multi,
                    task_index=index,
                    extra_metadata={
                        "createdAt": result.created_at.isoformat(),
                        "sourceType": ctx.source_type,
                        "sourceThreadId": ctx.source_thread_id,
                    },
                )
                saved += 1
            except Exception as e:
                logger.error(f"Failed to save task record for {result.id}: {e}", exc_info=True)

        try:
            self.repos.discussions.update_status(
                ctx.discussion_id,
                ctx.team_id,
                "analyzed",
                notion_task_ids=[result.id for result, _ in created],
            )
        except Exception as e:
            logger.error(f"Failed to record Notion task ids: {e}", exc_info=True)
        logger.info(f"Saved {saved}/{len(created)} task record(s)")

    def _finalize(self, ctx: ProcessingContext, created: list[CreatedTask]) -> ProcessingResult:
        config = ctx.config
        self._update_job_stage(ctx, "notification")

        detection = ctx.analysis.task_detection
        self._update_discussion(
            ctx,
            "update_results",
            status="completed",
            thread_data=ctx.thread.to_dict(),
            total_messages=len(ctx.thread.messages),
            ai_summary=ctx.analysis.summary.summary,
            ai_key_points=list(ctx.analysis.summary.key_points),
            ai_tasks=detection.to_dict(),
            is_multi_task=detection.is_multi_task,
            processed_at=_utc_now(),
        )

        notion_tasks = [result for result, _ in created]
        message = generate_reply_message(
            notion_tasks,
            config.reply_personality,
            config.anthropic_api_key,
            config.personality_icon,
        )
        self._notify(ctx, message)

        processing_time_ms = ctx.elapsed_ms
        self._complete_job(ctx, processing_time_ms, task_ids=[t.id for t in notion_tasks])
        logger.info(
            f"Discussion {ctx.discussion_id} completed with {len(notion_tasks)} task(s) "
            f"in {processing_time_ms}ms"
        )
        return self._result(ctx, notion_tasks, processing_time_ms)

    def _result(
        self,
        ctx: ProcessingContext,
        notion_tasks: list[NotionTaskResult],
        processing_time_ms: int,
        is_bootstrap: bool = False,
    ) -> ProcessingResult:
        return ProcessingResult(
            discussion_id=str(ctx.discussion_id),
            thread=ctx.thread,
            ai_analysis=ctx.analysis,
            notion_tasks=notion_tasks,
            processing_time_ms=processing_time_ms,
            job_id=str(ctx.job_id) if ctx.job_id else None,
            is_bootstrap=is_bootstrap,
        )

    def _fail(self, ctx: ProcessingContext, error: Exception) -> ProcessingError:
        """Record a failure on the discussion and job, and return the error to raise."""
        if isinstance(error, ProcessingError):
            processing_error = error
        else:
            processing_error = ProcessingError(
                str(error),
                "unknown",
                {"originalError": repr(error)},
                retryable=True,
            )
        logger.error(
            f"Processing failed for discussion {ctx.discussion_id} "
            f"(stage: {processing_error.stage}): {processing_error.message}",
            exc_info=error,
        )

        try:
            self.repos.discussions.mark_failed(
                ctx.discussion_id, ctx.team_id, processing_error.message
            )
        except Exception as e:
            logger.error(f"Failed to mark discussion {ctx.discussion_id} failed: {e}")

        if ctx.job_id:
            try:
                self.repos.sync_jobs.fail(
                    ctx.job_id,
                    ctx.team_id,
                    error=processing_error.message,
                    error_stack="".join(
                        traceback.format_exception(type(error), error, error.__traceback__)
                    ),
                    processing_time_ms=ctx.elapsed_ms,
                )
            except Exception as e:
                logger.error(f"Failed to mark job {ctx.job_id} failed: {e}")

        return processing_error

    # ------------------------------------------------------------------
    # Bookkeeping helpers
    # ------------------------------------------------------------------

    def _update_discussion(self, ctx: ProcessingContext, stage: str, **fields: Any) -> None:
        """Write discussion columns; a failure aborts processing."""
        status = fields.pop("status", None)
        try:
            discussion = self.repos.discussions.get_scoped(ctx.discussion_id, ctx.team_id)
            if discussion is None:
                raise LookupError(f"Discussion {ctx.discussion_id} not found")
            if status is not None:
                discussion.status = status
            for key, value in fields.items():
                setattr(discussion, key, value)
            self.repos.discussions.session.flush()
        except Exception as e:
            raise ProcessingError(
                f"Failed to update discussion: {e}",
                stage,
                {"discussionId": str(ctx.discussion_id), "status": status},
            ) from e

    def _start_job(self, ctx: ProcessingContext) -> Optional[uuid.UUID]:
        config = ctx.config
        try:
            job = self.repos.sync_jobs.start(
                team_id=config.team_id,
                discussion_id=ctx.discussion_id,
                source_config_id=config.source_config_id,
                metadata={
                    "sourceType": ctx.source_type,
                    "sourceThreadId": ctx.parsed.source_thread_id,
                    "emailSlug": ctx.parsed.metadata.get("emailSlug"),
                    "flowId": str(config.flow.id) if config.flow else None,
                    "inputId": str(config.matched_input.id) if config.matched_input else None,
                },
                max_attempts=settings.retry_max_attempts,
            )
        except Exception as e:
            logger.error(f"Failed to create sync job: {e}", exc_info=True)
            return None
        logger.debug(f"Started sync job {job.id}")
        return job.id

    def _update_job_stage(self, ctx: ProcessingContext, stage: str) -> None:
        if not ctx.job_id:
            return
        try:
            self.repos.sync_jobs.update_stage(ctx.job_id, ctx.team_id, stage)
        except Exception as e:
            logger.warning(f"Failed to move job {ctx.job_id} to {stage}: {e}")

    def _complete_job(
        self,
        ctx: ProcessingContext,
        processing_time_ms: int,
        task_ids: list[str],
        metadata: Optional[dict[str, Any]] = None,
    ) -> None:
        if not ctx.job_id:
            return
        try:
            self.repos.sync_jobs.complete(
                ctx.job_id, ctx.team_id, processing_time_ms, task_ids, metadata
            )
        except Exception as e:
            logger.warning(f"Failed to complete job {ctx.job_id}: {e}")

    def _post_status(self, ctx: ProcessingContext, status: str) -> None:
        try:
            ctx.adapter.update_status(ctx.source_thread_id, status, ctx.config.adapter_config)
        except Exception as e:
            logger.warning(f"Failed to post {status} status to {ctx.source_type}: {e}")

    def _notify(self, ctx: ProcessingContext, message: str) -> None:
        """Clear the processing reaction, reply, and mark the thread completed."""
        adapter, adapter_config = ctx.adapter, ctx.config.adapter_config
        thread_id = ctx.source_thread_id
        try:
            adapter.remove_reaction(thread_id, PROCESSING_REACTION, adapter_config)
            if not adapter.post_reply(thread_id, message, adapter_config):
                logger.warning(f"Reply to {ctx.source_type} thread {thread_id} was not posted")
            adapter.update_status(thread_id, "completed", adapter_config)
        except Exception as e:
            logger.error(f"Failed to notify {ctx.source_type} thread {thread_id}: {e}")
