'''
Configuration for the Amimi backend.
'''

import os
from typing import Annotated

from pydantic import BaseModel, Field

class EngineConfig(BaseModel):
    '''Limits and wiring for the synchronization engine.'''

    max_cascade_depth: Annotated[
        int, Field(ge=1, description="Maximum chain of dispatches from the initiating request.")
    ] = 32
    max_dispatches: Annotated[
        int, Field(ge=1, description="Maximum actions dispatched by syncs per request.")
    ] = 1000
    request_action: Annotated[
        str, Field(description="Action seeded into each request's trace.")
    ] = "Requesting/request"
    respond_action: Annotated[
        str, Field(description="Action whose params become the request's response.")
    ] = "Requesting/respond"

class ServerConfig(BaseModel):
    host: str = "0.0.0.0"
    port: int = 8000
    base_url: Annotated[
        str, Field(description="Prefix of every concept route.")
    ] = "/api"
    request_timeout: Annotated[
        float, Field(gt=0, description="Seconds before a request gives up on its response.")
    ] = 30
    log_level: str = "INFO"

class SessionConfig(BaseModel):
    ttl_days: Annotated[
        float, Field(gt=0, description="Days before a session expires.")
    ] = 30
    min_password: int = 6

class AgentConfig(BaseModel):
    # Any litellm model string, provider keys are read from the environment
    model: str = "gemini/gemini-2.5-flash"
    api_key: str | None = None
    temperature: float | None = 0.7
    max_tokens: int | None = 1024
    history: Annotated[
        int, Field(ge=0, description="Number of prior messages sent with each prompt.")
    ] = 10

class PassthroughConfig(BaseModel):
    '''Routes which invoke a concept action directly instead of a request.'''

    inclusions: Annotated[
        dict[str, str],
        Field(description="Route mapped to the justification for exposing it.")
    ] = {
        "/Sessioning/register": "public registration endpoint",
        "/Sessioning/login": "public login endpoint",
    }

class Config(BaseModel):
    engine: EngineConfig = EngineConfig()
    server: ServerConfig = ServerConfig()
    sessions: SessionConfig = SessionConfig()
    agent: AgentConfig = AgentConfig()
    passthrough: PassthroughConfig = Field(default_factory=PassthroughConfig)

    @classmethod
    def from_file(cls, path: str) -> 'Config':
        """Load the Amimi configuration from TOML."""
        import tomllib
        try:
            with open(os.path.expanduser(path), 'r') as f:
                if source := f.read():
                    data = Config.model_validate(tomllib.loads(source))
                else:
                    raise FileNotFoundError(f"Empty config file: {path}")
        except FileNotFoundError:
            data = Config()

        return data

    @classmethod
    def from_env(cls) -> 'Config':
        if path := os.environ.get("AMIMI_CONFIG"):
            return cls.from_file(path)
        return cls()

