import logging
from pathlib import Path
from typing import Any

from jinja2 import Environment, FileSystemLoader, select_autoescape

logger = logging.getLogger(__name__)


class Jinja2Env:
    """
    Initiates the Jinja2 environment used to render the pages of this plugin
    """

    def __init__(self, template_dir: str | None = None):
        templates_dir = Path(template_dir) if template_dir else Path(__file__).with_name("templates")
        template_loader = FileSystemLoader(searchpath=templates_dir)
        logger.info(f"Loaded templates from {templates_dir}: {template_loader.list_templates()}")
        self.jinja2_env = Environment(
            loader=template_loader,
            extensions=["jinja2.ext.i18n"],
            autoescape=select_autoescape(["html", "jinja2"]),
        )
        # install_null_translations is available when instantiating env with extension jinja2.ext.i18n
        assert hasattr(self.jinja2_env, "install_null_translations")  # please mypy
        self.jinja2_env.install_null_translations(newstyle=True)

    def render(self, template: str, **kwargs: Any) -> str:
        return self.jinja2_env.get_template(template).render(**kwargs)
