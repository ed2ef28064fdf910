"""
Discussion API routes.

Endpoints for processing parsed discussions, retrying failed ones and
inspecting the results.
"""

import logging
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from discubot.ai.analyzer import AIAnalyzer, create_analyzer
from discubot.api.schemas import (
    DiscussionResponse,
    ProcessDiscussionRequest,
    ProcessingResultResponse,
    SyncJobResponse,
    TaskResponse,
)
from discubot.db.connection import get_db
from discubot.db.repositories import (
    DiscussionRepository,
    SyncJobRepository,
    TaskRepository,
)
from discubot.exceptions import ProcessingError
from discubot.pipeline import DiscussionProcessor, ProcessorRepositories
from discubot.services.notion import NotionTaskCreator

logger = logging.getLogger(__name__)

router = APIRouter()

# Errors caused by the request itself rather than the processing
CLIENT_ERROR_STATUS = {"validation": 400, "flow_loading": 422}

# Shared by every request, built on first use
_analyzer: Optional[AIAnalyzer] = None
_task_creator: Optional[NotionTaskCreator] = None


def get_analyzer() -> AIAnalyzer:
    """Get or create the process-wide analyzer (lazy initialization)."""
    global _analyzer
    if _analyzer is None:
        _analyzer = create_analyzer()
        logger.info("AIAnalyzer initialized for discussion processing")
    return _analyzer


def get_task_creator() -> NotionTaskCreator:
    """Get or create the process-wide Notion client (lazy initialization)."""
    global _task_creator
    if _task_creator is None:
        _task_creator = NotionTaskCreator()
    return _task_creator


def close_shared_services() -> None:
    """Close the shared Notion client and drop the shared analyzer."""
    global _analyzer, _task_creator
    if _task_creator is not None:
        _task_creator.close()
    _analyzer = None
    _task_creator = None


def get_processor(
    session: Session = Depends(get_db),
    analyzer: AIAnalyzer = Depends(get_analyzer),
    task_creator: NotionTaskCreator = Depends(get_task_creator),
) -> DiscussionProcessor:
    """Dependency building a processor bound to the request session."""
    return DiscussionProcessor(
        ProcessorRepositories.from_session(session),
        analyzer=analyzer,
        task_creator=task_creator,
    )


def _error_response(session: Session, error: ProcessingError) -> HTTPException:
    # Keep the failed discussion and job records
    session.commit()
    return HTTPException(
        status_code=CLIENT_ERROR_STATUS.get(error.stage, 500),
        detail=error.to_dict(),
    )


@router.post("/process", response_model=ProcessingResultResponse)
def process_discussion(
    request: ProcessDiscussionRequest,
    session: Session = Depends(get_db),
    processor: DiscussionProcessor = Depends(get_processor),
) -> ProcessingResultResponse:
    """
    Process a parsed discussion into Notion tasks.

    Returns:
        Processing result; cached=True if the thread was already processed

    Raises:
        HTTPException: 400 for invalid input, 422 when no configuration
            matches, 500 for processing failures
    """
    try:
        result = processor.process(request.to_parsed(), request.to_options())
    except ProcessingError as e:
        raise _error_response(session, e) from e
    return ProcessingResultResponse.from_result(result)


@router.post("/{discussion_id}/retry", response_model=ProcessingResultResponse)
def retry_discussion(
    discussion_id: UUID,
    session: Session = Depends(get_db),
    processor: DiscussionProcessor = Depends(get_processor),
) -> ProcessingResultResponse:
    """Retry a failed discussion with backoff."""
    try:
        result = processor.retry_failed_discussion(discussion_id)
    except ProcessingError as e:
        raise _error_response(session, e) from e
    return ProcessingResultResponse.from_result(result)


@router.get("/{discussion_id}", response_model=DiscussionResponse)
def get_discussion(
    discussion_id: UUID,
    session: Session = Depends(get_db),
) -> DiscussionResponse:
    """
    Get a discussion with its tasks and sync jobs.

    Raises:
        HTTPException: 404 if the discussion does not exist
    """
    discussion = DiscussionRepository(session).get(discussion_id)
    if discussion is None:
        raise HTTPException(status_code=404, detail=f"Discussion {discussion_id} not found")

    response = DiscussionResponse.model_validate(discussion)
    response.tasks = [
        TaskResponse.model_validate(t)
        for t in TaskRepository(session).get_by_discussion(discussion.id, discussion.team_id)
    ]
    response.jobs = [
        SyncJobResponse.model_validate(j)
        for j in SyncJobRepository(session).get_by_discussion(discussion.id)
    ]
    return response
