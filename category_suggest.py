from __future__ import annotations

import json
import logging
from http.client import HTTPException
from typing import Optional
from urllib.request import Request, urlopen

from sqlalchemy import select
from sqlalchemy.orm import Session

from config import get_settings
from models import Expense, UserCategory


logger = logging.getLogger(__name__)

RECENT_EXAMPLES = 10

PROMPT_TEMPLATE = (
    'You are a finance tracking assistant. Based on the transaction title "{title}", '
    "suggest the most appropriate category from the user's existing categories: "
    "{categories}.\n\n"
    "Recent spending patterns: {recent}\n\n"
    "Respond with ONLY the category name (exact match from the list), or null if no "
    "good match exists. Do not explain or provide any other text."
)


class CategorySuggester:
    def __init__(self, session: Session, user_id: str) -> None:
        self.session = session
        self.user_id = user_id
        self.settings = get_settings()

    def category_names(self) -> list[str]:
        stmt = (
            select(UserCategory.name)
            .where(UserCategory.user_id == self.user_id)
            .order_by(UserCategory.name)
        )
        return list(self.session.scalars(stmt).all())

    def recent_examples(self) -> list[tuple[str, str]]:
        stmt = (
            select(Expense.title, Expense.category_name)
            .where(
                Expense.user_id == self.user_id,
                Expense.is_income.is_(False),
                Expense.category_name.is_not(None),
            )
            .order_by(Expense.created_at.desc(), Expense.id.desc())
            .limit(RECENT_EXAMPLES)
        )
        return [(row.title, row.category_name) for row in self.session.execute(stmt)]

    def build_prompt(self, title: str, categories: list[str]) -> str:
        recent = self.recent_examples()
        recent_text = (
            "; ".join(f'"{t}" -> {c}' for t, c in recent) or "No recent expenses"
        )
        return PROMPT_TEMPLATE.format(
            title=title,
            categories=", ".join(categories) or "No categories yet",
            recent=recent_text,
        )

    def suggest(self, title: str) -> Optional[str]:
        if not self.settings.llm_api_key:
            logger.warning("suggest_category: llm_api_key not configured")
            return None
        categories = self.category_names()
        if not categories:
            return None
        prompt = self.build_prompt(title, categories)
        try:
            answer = self._complete(prompt)
        except RuntimeError as exc:
            logger.warning(f"suggest_category: user={self.user_id} error={exc}")
            return None
        if answer in categories:
            return answer
        return None

    def _complete(self, prompt: str) -> Optional[str]:
        body = json.dumps(
            {
                "model": self.settings.llm_model,
                "messages": [{"role": "user", "content": prompt}],
            }
        ).encode("utf-8")
        req = Request(
            self.settings.llm_api_url,
            data=body,
            method="POST",
            headers={
                "Authorization": f"Bearer {self.settings.llm_api_key}",
                "Content-Type": "application/json",
            },
        )
        try:
            with urlopen(req, timeout=self.settings.llm_timeout_secs) as resp:
                payload = json.loads(resp.read().decode("utf-8"))
        except (
            OSError,
            HTTPException,
            UnicodeDecodeError,
            json.JSONDecodeError,
        ) as exc:
            raise RuntimeError("LLM request failed") from exc

        try:
            content = payload["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as exc:
            raise RuntimeError("Unexpected LLM response") from exc
        if not isinstance(content, str):
            return None
        return content.strip() or None
