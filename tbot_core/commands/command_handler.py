# tbot_core/commands/command_handler.py
import inspect
import logging
from types import ModuleType
from typing import TYPE_CHECKING, Any, Callable, Dict, Iterable, List, Optional, Tuple

from tbot_core.commands import core_commands, fun_commands

if TYPE_CHECKING:
    from tbot_core.network_handler import NetworkHandler
    from tbot_core.state_manager import CommandInvocation

logger = logging.getLogger("tbot.commands")

# The command set is fixed at startup: these modules are the whole table.
COMMAND_MODULES: Tuple[ModuleType, ...] = (core_commands, fun_commands)


class CommandHandler:
    """Static lookup table from command name to handler."""

    def __init__(self, command_prefix: str, modules: Iterable[ModuleType] = COMMAND_MODULES):
        self.command_prefix = command_prefix
        self.command_map: Dict[str, Tuple[Callable, bool]] = {}
        self.registered_command_help: Dict[str, Dict[str, Any]] = {}

        for module in modules:
            self._register_module(module)
        self.command_map["help"] = (self.handle_help_command, True)
        self.registered_command_help["help"] = {
            "usage": "help [command]",
            "description": "Lists the available commands, or describes one.",
        }
        logger.info(f"Command table ready: {', '.join(self.command_names)}")

    def _register_module(self, module: ModuleType) -> None:
        for cmd_def in getattr(module, "COMMAND_DEFINITIONS", []):
            cmd_name = cmd_def["name"].lower()
            handler_func = getattr(module, cmd_def["handler"], None)
            if handler_func is None or not callable(handler_func):
                logger.error(f"Could not find handler '{cmd_def['handler']}' in {module.__name__} for command '{cmd_name}'.")
                continue
            if cmd_name in self.command_map:
                logger.warning(f"Command '{cmd_name}' from {module.__name__} conflicts with existing command. Overwriting.")
            self.command_map[cmd_name] = (handler_func, inspect.iscoroutinefunction(handler_func))
            if cmd_def.get("help"):
                self.registered_command_help[cmd_name] = cmd_def["help"]

    @property
    def command_names(self) -> List[str]:
        return list(self.command_map.keys())

    def has_command(self, name: str) -> bool:
        return name.lower() in self.command_map

    async def execute(self, transport: "NetworkHandler", invocation: "CommandInvocation", reply_target: str) -> bool:
        """
        Runs the handler for ``invocation``.

        Returns False if the command is unknown. Handler exceptions propagate
        to the caller.
        """
        entry = self.command_map.get(invocation.command_name)
        if entry is None:
            return False
        handler_func, is_async = entry
        logger.info(f"Executing command '{invocation.command_name}' from {invocation.sender} (args: {invocation.args})")
        result = handler_func(transport, invocation.sender, reply_target, invocation.raw_text, invocation.args)
        if is_async or inspect.isawaitable(result):
            await result
        return True

    def get_help_text_for_command(self, command_name: str) -> Optional[str]:
        help_info = self.registered_command_help.get(command_name.lower())
        if not help_info:
            return None
        return f"{self.command_prefix}{help_info['usage']} - {help_info['description']}"

    async def handle_help_command(self, transport: "NetworkHandler", sender: str, target: str, raw_text: str, args: List[str]):
        if args:
            help_text = self.get_help_text_for_command(args[0].lstrip(self.command_prefix))
            if help_text:
                await transport.say(target, f"{sender}: {help_text}")
                return
            await transport.say(target, f"{sender}: No help available for \"{args[0]}\".")
            return
        await transport.say(target, f"{sender}: Available commands: {', '.join(self.command_names)}")
