from functools import lru_cache
from app.settings import settings
from domain.services.evaluation_pipeline import EvaluationPipeline
from domain.services.queue_consumer import QueueConsumer
from infra.llm.client import LLMClient
from infra.queue.job_queue import JobQueue
from infra.rag.embeddings import OpenAIEmbedder
from infra.rag.retriever import QdrantRetriever
from infra.repositories.files_repository import FilesRepository
from infra.repositories.jobs_repository import JobsRepository


@lru_cache
def get_jobs_repo() -> JobsRepository:
    return JobsRepository()


@lru_cache
def get_files_repo() -> FilesRepository:
    return FilesRepository()


@lru_cache
def get_queue() -> JobQueue:
    return JobQueue(
        settings.QUEUE_NAME,
        lease_seconds=settings.QUEUE_LEASE_SECONDS,
        max_stalled_count=settings.QUEUE_MAX_STALLED_COUNT,
    )


def build_pipeline() -> EvaluationPipeline:
    return EvaluationPipeline(
        store=get_jobs_repo(),
        documents=get_files_repo(),
        embedder=OpenAIEmbedder(settings),
        retriever=QdrantRetriever(settings=settings),
        llm=LLMClient(settings),
        collection=settings.RAG_COLLECTION,
        top_k=settings.RAG_TOP_K,
        query_max_chars=settings.RAG_QUERY_MAX_CHARS,
        max_tokens=settings.LLM_MAX_TOKENS,
    )


def build_consumer() -> QueueConsumer:
    return QueueConsumer(
        get_queue(),
        build_pipeline(),
        get_jobs_repo(),
        concurrency=settings.WORKER_CONCURRENCY,
        poll_interval=settings.WORKER_POLL_INTERVAL_SECONDS,
        stall_interval=settings.QUEUE_STALL_INTERVAL_SECONDS,
    )
