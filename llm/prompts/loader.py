"""Prompt loading and management."""

import yaml
from pathlib import Path
from typing import Dict, Any, Optional
from logger import get_logger

logger = get_logger()


class PromptManager:
    """Loads prompt definitions from YAML files and renders them.

    A prompt file holds a system_prompt, a user_prompt_template, optional
    named sub-templates (keys ending in _template) and model parameters.
    Templates use str.format placeholders.
    """

    def __init__(self, prompts_dir: Optional[Path] = None):
        """Initialize the prompt manager.

        Args:
            prompts_dir: Directory containing prompt YAML files.
                        Defaults to llm/prompts/ in the project.
        """
        self.prompts_dir = prompts_dir or Path(__file__).parent
        self._cache: Dict[str, Dict[str, Any]] = {}

    def load_prompt(self, prompt_name: str) -> Dict[str, Any]:
        """Load a prompt configuration from YAML file.

        Args:
            prompt_name: Name of the prompt file (without .yaml extension).

        Returns:
            Dictionary containing prompt configuration.

        Raises:
            FileNotFoundError: If prompt file doesn't exist.
            yaml.YAMLError: If YAML is invalid.
        """
        if prompt_name in self._cache:
            return self._cache[prompt_name]

        prompt_file = self.prompts_dir / f"{prompt_name}.yaml"
        if not prompt_file.exists():
            raise FileNotFoundError(f"Prompt file not found: {prompt_file}")

        logger.debug(f"Loading prompt from {prompt_file}")
        with open(prompt_file, "r") as f:
            prompt_config = yaml.safe_load(f)

        self._cache[prompt_name] = prompt_config
        return prompt_config

    def render_section(
        self, prompt_name: str, section: str, variables: Dict[str, Any]
    ) -> str:
        """Render one named sub-template, e.g. "preferences_template"."""
        template = self.load_prompt(prompt_name).get(section, "")
        return self._format(prompt_name, template, variables)

    def render_prompt(
        self, prompt_name: str, variables: Dict[str, Any]
    ) -> Dict[str, Any]:
        """Load and render a prompt with the given variables.

        Args:
            prompt_name: Name of the prompt to load.
            variables: Dictionary of variables to substitute in templates.

        Returns:
            Dictionary with rendered prompts and parameters.
            Keys: system_prompt, user_prompt, parameters, version

        Raises:
            ValueError: If the template needs a variable that was not given.
        """
        prompt_config = self.load_prompt(prompt_name)

        return {
            "system_prompt": prompt_config.get("system_prompt", "").strip(),
            "user_prompt": self._format(
                prompt_name, prompt_config.get("user_prompt_template", ""), variables
            ),
            "parameters": prompt_config.get("parameters", {}),
            "version": prompt_config.get("version", "unknown"),
        }

    def _format(self, prompt_name: str, template: str, variables: Dict[str, Any]) -> str:
        try:
            return template.format(**variables)
        except KeyError as e:
            raise ValueError(f"Prompt '{prompt_name}' needs variable {e}") from e
