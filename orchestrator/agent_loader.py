"""
AgentLoader — discovers assistant and tool definitions on disk.

Layout (directories named __pycache__ are ignored):

    assistants/<dir>/assistant.json   JSON array, the first element is used:
                                      {"name", "instructions", "model",
                                       "tools": [tool names], "log_flag"}
    tools/<dir>/tool.json             {"type": "function",
                                       "function": {"name", "description", "parameters"}}
    tools/<dir>/handler.py            optional; exports a function named like
                                      the tool (or `handler`) executed locally
                                      when a run requires action

Usage in AssistantsEngine.load_assistants():
    loader = AgentLoader()
    assistants = loader.build_assistants()
    await loader.register(threads, assistants)
"""
import importlib.util
import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

import config
from orchestrator.assistant import Assistant
from orchestrator.threads import ThreadsClient
from orchestrator.types import Tool

logger = logging.getLogger(__name__)

_SKIP_DIRS = {"__pycache__"}


class FunctionDefinition(BaseModel):
    name: str
    description: str = ""
    parameters: Dict[str, Any] = Field(
        default_factory=lambda: {"type": "object", "properties": {}, "required": []}
    )


class ToolDefinition(BaseModel):
    type: Literal["function"] = "function"
    function: FunctionDefinition


class AssistantConfig(BaseModel):
    # Extra keys (temperature, metadata, ...) are forwarded when the
    # assistant is created on the provider.
    model_config = ConfigDict(extra="allow")

    name: Optional[str] = None
    instructions: str = "You are a helpful assistant."
    model: str = Field(default_factory=lambda: config.OPENAI_MODEL)
    tools: List[str] = Field(default_factory=list)
    log_flag: bool = False


@dataclass
class LoadedTool:
    definition: ToolDefinition
    handler: Optional[Callable[..., Any]] = None

    @property
    def name(self) -> str:
        return self.definition.function.name


class AgentLoader:
    """Scans the assistants/ and tools/ directories and builds Assistant objects."""

    def __init__(
        self,
        assistants_dir: Union[str, Path, None] = None,
        tools_dir: Union[str, Path, None] = None,
    ):
        self.assistants_dir = Path(assistants_dir or config.ASSISTANTS_DIR)
        self.tools_dir = Path(tools_dir or config.TOOLS_DIR)
        self._tools: Dict[str, LoadedTool] = {}
        self._configs: Dict[str, AssistantConfig] = {}
        self._loaded = False

    # ── Public API ─────────────────────────────────────────────────────────────

    def get_tools(self) -> Dict[str, LoadedTool]:
        self._ensure_loaded()
        return dict(self._tools)

    def get_configs(self) -> Dict[str, AssistantConfig]:
        self._ensure_loaded()
        return dict(self._configs)

    def build_assistants(self) -> List[Assistant]:
        """Build local Assistant objects, in directory order.

        Tool names an assistant lists but that have no tool.json are skipped.
        Tools without a handler are still declared on the provider but are
        not callable locally.
        """
        self._ensure_loaded()
        assistants = []
        for name, cfg in self._configs.items():
            functions = []
            for tool_name in cfg.tools:
                loaded = self._tools.get(tool_name)
                if loaded is None:
                    logger.warning("Assistant '%s' lists unknown tool '%s'; skipped.", name, tool_name)
                    continue
                if loaded.handler is None:
                    continue
                fn = loaded.definition.function
                functions.append(Tool(
                    name=fn.name,
                    function=loaded.handler,
                    description=fn.description,
                    parameters=fn.parameters,
                ))
            assistants.append(Assistant(
                name=name,
                instructions=cfg.instructions,
                model=cfg.model,
                functions=functions,
                log_flag=cfg.log_flag,
            ))
        return assistants

    async def register(self, threads: ThreadsClient, assistants: List[Assistant]) -> None:
        """Attach a provider assistant to each Assistant, creating missing ones."""
        self._ensure_loaded()
        existing = {a.name: a for a in await threads.list_assistants()}
        for assistant in assistants:
            instance = existing.get(assistant.name)
            if instance is None:
                cfg = self._configs.get(assistant.name) or AssistantConfig(name=assistant.name)
                params = cfg.model_dump(exclude={"tools", "log_flag"})
                params["name"] = assistant.name
                params["tools"] = [
                    self._tools[t].definition.model_dump()
                    for t in cfg.tools
                    if t in self._tools
                ]
                instance = await threads.create_assistant(**params)
                logger.info("Assistant '%s' created (%s).", assistant.name, instance.id)
            else:
                logger.info("Assistant '%s' already exists (%s).", assistant.name, instance.id)
            assistant.instance_id = instance.id

    # ── Internal ───────────────────────────────────────────────────────────────

    def _ensure_loaded(self) -> None:
        if self._loaded:
            return
        self._load_tools()
        self._load_assistants()
        self._loaded = True

    @staticmethod
    def _subdirs(base: Path) -> List[Path]:
        if not base.is_dir():
            logger.warning("Directory %s not found, nothing to load.", base)
            return []
        return sorted(p for p in base.iterdir() if p.is_dir() and p.name not in _SKIP_DIRS)

    def _load_tools(self) -> None:
        for tool_dir in self._subdirs(self.tools_dir):
            tool_json = tool_dir / "tool.json"
            try:
                definition = ToolDefinition.model_validate_json(tool_json.read_text(encoding="utf-8"))
                loaded = LoadedTool(definition, self._load_handler(tool_dir, definition.function.name))
            except Exception:
                logger.exception("Error loading tool from %s", tool_dir)
                continue
            if loaded.name in self._tools:
                raise ValueError(f"Duplicate tool name '{loaded.name}' in {self.tools_dir}")
            self._tools[loaded.name] = loaded
            logger.info("Loaded tool: %s (handler=%s)", loaded.name, loaded.handler is not None)

    @staticmethod
    def _load_handler(tool_dir: Path, tool_name: str) -> Optional[Callable[..., Any]]:
        handler_path = tool_dir / "handler.py"
        if not handler_path.exists():
            return None
        spec = importlib.util.spec_from_file_location(f"_tool_handler_{tool_dir.name}", handler_path)
        if spec is None or spec.loader is None:
            raise ImportError(f"Cannot import {handler_path}")
        module = importlib.util.module_from_spec(spec)
        spec.loader.exec_module(module)
        handler = getattr(module, tool_name, None) or getattr(module, "handler", None)
        if handler is None:
            logger.warning("%s defines neither %s() nor handler(); skipped.", handler_path, tool_name)
        return handler

    def _load_assistants(self) -> None:
        for assistant_dir in self._subdirs(self.assistants_dir):
            config_path = assistant_dir / "assistant.json"
            try:
                raw = json.loads(config_path.read_text(encoding="utf-8"))
                if not isinstance(raw, list) or not raw:
                    raise ValueError("assistant.json must be a non-empty JSON array")
                cfg = AssistantConfig.model_validate(raw[0])
            except (OSError, ValueError) as exc:
                logger.error("Error loading assistant from %s: %s", config_path, exc)
                continue
            name = cfg.name or assistant_dir.name
            if name in self._configs:
                raise ValueError(f"Duplicate assistant name '{name}' in {self.assistants_dir}")
            self._configs[name] = cfg
            logger.info("Loaded assistant config: %s (tools=%s)", name, cfg.tools)
