import asyncio
import logging

from temporalio.worker import Worker

from activities.order_activities import OrderActivities
from repositories.order_repository import OrderRepository
from repositories.store import InMemoryStore
from services.order_service import OrderService
from services.payment_gateway import SimulatedPaymentGateway
from services.payment_verifier import GatewayPaymentVerifier
from services.risk_assessment import AIRiskScoringService
from utils.cache import MemoryCache
from utils.config import Settings, get_settings
from utils.temporal import get_temporal_client
from workflows.order_workflow import OrderLifecycleWorkflow

logger = logging.getLogger(__name__)


def build_order_service(settings: Settings) -> OrderService:
    """Wire the order service and its collaborators."""
    # A TTL of 0 turns read-through caching off
    cache = MemoryCache() if settings.order_cache_ttl_seconds else None
    repository = OrderRepository(InMemoryStore(), cache=cache)
    repository.cache_ttl = settings.order_cache_ttl_seconds
    risk_assessor = AIRiskScoringService.from_settings(settings)
    if risk_assessor.client is None:
        logger.info("OPENAI_API_KEY not set, risk scoring uses rules only")
    verifier = GatewayPaymentVerifier(SimulatedPaymentGateway())
    return OrderService(repository, payment_verifier=verifier, risk_assessor=risk_assessor)


async def main():
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    logger.info(f"Connecting to Temporal at {settings.temporal_address} (namespace: {settings.temporal_namespace})...")
    try:
        client = await get_temporal_client(settings)
        logger.info(f"Successfully connected to namespace: {settings.temporal_namespace}")

        order_activities = OrderActivities(build_order_service(settings))
        worker = Worker(
            client,
            task_queue=settings.order_task_queue,
            workflows=[OrderLifecycleWorkflow],
            activities=order_activities.all(),
            max_concurrent_activities=50,
        )
        logger.info(f"Order worker listening on task queue: {settings.order_task_queue}")
        await worker.run()
    except Exception as e:
        logger.error(f"Error in worker: {e}")
        raise


def run():
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Worker shutdown complete")


if __name__ == "__main__":
    run()
