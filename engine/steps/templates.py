"""
Rendering of response files and other generated text files.
"""

from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union

from common.command_utils import log_provision
from common.file_utils import write_text_file
from engine.base_step import BaseStep
from engine.context import StepContext
from engine.models import StepResult
from engine.registry import StepRegistry
from engine.templating import looks_secret, placeholders, render_template
from provision import config as static_config

SECRET_FILE_MODE = 0o600
DEFAULT_FILE_MODE = 0o644


@StepRegistry.register("render_template")
class RenderTemplate(BaseStep):
    """
    Render ``template_text`` with ``bindings`` and write it to ``output_path``.

    The output is created owner-only (0600) when ``secret`` is set or when
    any placeholder in the template names a secret (password, token, ...).
    """

    def __init__(
        self,
        name: str,
        template_text: str,
        bindings: Mapping[str, Any],
        output_path: Union[str, Path],
        secret: bool = False,
        owner: Optional[str] = None,
        group: Optional[str] = None,
    ):
        super().__init__(name)
        self.template_text = template_text
        self.bindings = dict(bindings)
        self.output_path = Path(output_path)
        self.secret = secret
        self.owner = owner
        self.group = group

    @property
    def is_secret(self) -> bool:
        if self.secret:
            return True
        return looks_secret(
            placeholders(self.template_text), static_config.SECRET_BINDING_MARKERS
        )

    def render(self) -> str:
        return render_template(self.template_text, self.bindings)

    def check(self, ctx: StepContext) -> bool:
        if not self.output_path.is_file():
            return False
        return self.output_path.read_text(encoding="utf-8") == self.render()

    def apply(self, ctx: StepContext) -> StepResult:
        content = self.render()
        mode = SECRET_FILE_MODE if self.is_secret else DEFAULT_FILE_MODE
        write_text_file(self.output_path, content, mode=mode)
        if self.owner or self.group:
            ctx.platform.set_owner_and_mode(
                self.output_path, self.owner, group=self.group
            )
        log_provision(
            f"{ctx.symbols.get('success', '✅')} Wrote {self.output_path} (mode {mode:o}).",
            "info",
            ctx.logger,
            ctx.config,
        )
        return StepResult.succeeded(self.name, message=f"wrote {self.output_path}")

    def describe(self) -> Dict[str, Any]:
        data = super().describe()
        data["output_path"] = str(self.output_path)
        return data
