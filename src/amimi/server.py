#!/usr/bin/env python3.13

'''
HTTP server exposing the Amimi concepts. Passthrough routes invoke a concept
action directly, every other route becomes a request for the syncs to handle.
'''

import asyncio
import logging
from typing import Annotated, Any

from fastapi import Body, Depends, FastAPI, Request
from fastapi.responses import JSONResponse

from amimi.agent import Companion
from amimi.concepts import load_concepts
from amimi.config import Config
from amimi.engine import Engine, RequestResult
from amimi.syncs import build_registry

logger = logging.getLogger(__name__)

CASCADE_HEADER = "X-Cascade-Status"

def build_engine(config: Config, companion: Companion | None = None) -> Engine:
    '''Load the concepts and syncs into an engine.'''
    return Engine(
        load_concepts(config, companion),
        build_registry(),
        config.engine
    )

def get_engine(request: Request) -> Engine:
    return request.app.state.engine

def get_config(request: Request) -> Config:
    return request.app.state.config

def reply(result: RequestResult, content: Any):
    if result.status != "complete":
        logger.warning("Request %s completed partially: %s", result.request, result.halted)
    return JSONResponse(content, headers={CASCADE_HEADER: result.status})

def build_app(config: Config | None = None, engine: Engine | None = None):
    config = config or Config.from_env()
    app = FastAPI(
        title="Amimi API",
        description="Concept actions composed by synchronizations."
    )
    app.state.config = config
    app.state.engine = engine or build_engine(config)

    @app.post(config.server.base_url + "/{route:path}")
    async def handle(
            route: str,
            body: Annotated[dict[str, Any], Body()] = {},
            engine: Engine = Depends(get_engine),
            config: Config = Depends(get_config)
        ):
        '''Invoke a passthrough action or submit a request.'''
        path = "/" + route.strip("/")
        try:
            async with asyncio.timeout(config.server.request_timeout):
                if path in config.passthrough.inclusions:
                    result = await engine.invoke(path.removeprefix("/"), body)
                else:
                    result = await engine.submit_request(path, body)
        except TimeoutError:
            logger.warning("Request to %s timed out", path)
            return JSONResponse(
                {"error": "Request timed out."},
                status_code=504
            )

        if result.response is None:
            logger.warning("Request %s to %s produced no response", result.request, path)
            return JSONResponse(
                {"error": "Response action not invoked."},
                status_code=504,
                headers={CASCADE_HEADER: result.status}
            )
        return reply(result, result.response)

    return app

def main():
    import uvicorn
    config = Config.from_env()
    logging.basicConfig(
        level=config.server.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s"
    )
    server = uvicorn.Server(uvicorn.Config(
        build_app(config),
        host=config.server.host,
        port=config.server.port
    ))
    try: server.run()
    except KeyboardInterrupt:
        print("Amimi server stopped by user.")

if __name__ == "__main__":
    main()
