import logging
from typing import Optional

import requests

from core.exceptions import SuggestionError
from core.models import SuggestedTask, Suggestions

logger = logging.getLogger(__name__)


class SuggestionClient:
    """Asks a remote endpoint to break an objective prompt down into tasks."""
    def __init__(self, url: str, timeout: float = 30, token: Optional[str] = None):
        self.url = url
        self.timeout = timeout
        self.s = requests.Session()
        if token:
            self.s.headers.update({"Authorization": f"Bearer {token}"})

    def suggest(self, prompt: str) -> Suggestions:
        prompt = (prompt or "").strip()
        if not prompt:
            raise SuggestionError("Describe the objective first.")
        try:
            r = self.s.post(self.url, json={"objectivePrompt": prompt}, timeout=self.timeout)
            r.raise_for_status()
            data = r.json()
        except (requests.RequestException, ValueError) as e:
            logger.warning("suggestion request failed: %s", e)
            raise SuggestionError("Failed to get AI suggestions. Please try again.") from e

        if not isinstance(data, dict) or "error" in data:
            raise SuggestionError("Failed to get AI suggestions. Please try again.")

        tasks = []
        for item in data.get("tasks") or []:
            desc = (item.get("taskDescription") or "").strip()
            if desc:
                tasks.append(SuggestedTask(description=desc, assignee=(item.get("assignee") or "").strip()))
        return Suggestions(
            objective_description=(data.get("objectiveDescription") or prompt).strip(),
            tasks=tasks,
        )
