"""
Agent Orchestration Service
===========================

Answers user queries through a staged pipeline:
- Quick-shot: retrieval-augmented draft from the documentation index
- Preflight classifier: is the draft enough, and if not, which way to go
- Direct tools: documentation retriever or structured data client
- Planner: concurrent multi-step plans synthesized into one streamed answer

Project Structure:
- config/: Configuration and retry settings
- core/: Infrastructure (clients, model caller, retries, memory, circuit breaker)
- tools/: Retrieval, data service endpoints and direct tool executors
- agents/: Quick-shot, classifier, router, planner, step executor, synthesizer, orchestrator
- workflows/: Plan pipeline and full pipeline wiring
- api/: FastAPI application and models
"""
import logging
import uvicorn

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# Import FastAPI app from api module
from Assistant.api import app
from Assistant.tools import EndpointRegistry
from Assistant.config import config
from Assistant.workflows import create_sequential_pipeline

# Export the pipeline for scripting and development; the API builds its own
# after discovering the data service endpoints
if config.DATA_ENDPOINTS_PATH:
    ROOT_AGENT = create_sequential_pipeline(EndpointRegistry.load_file(config.DATA_ENDPOINTS_PATH))
else:
    ROOT_AGENT = create_sequential_pipeline()

if __name__ == "__main__":
    logger.info("Starting Agent Orchestration Service")
    logger.info("Pipeline: quick-shot -> classifier -> direct tool | planner")

    # Run FastAPI application
    uvicorn.run(app, host="0.0.0.0", port=8080)
