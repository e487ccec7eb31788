"""Problem sources: where a grind's daily problem comes from.

A source supplies problems by catalog ID or at random. The LeetCode adapter
talks to the public GraphQL endpoint; curated lists narrow the random pick to
a CSV of hand-picked problem IDs.
"""

import csv
import logging
import random
import threading
from pathlib import Path
from typing import Any, Protocol

import httpx

from grindset.core.config import constants, settings
from grindset.core.errors import ProblemNotFoundError, ProblemSourceUnavailableError
from grindset.core.logging import span
from grindset.domain.task import Problem


logger = logging.getLogger(__name__)


class ProblemSource(Protocol):
    """Capability for obtaining coding problems."""

    async def fetch_by_id(self, problem_id: int) -> Problem: ...

    async def fetch_random(self) -> Problem: ...


_QUESTION_LIST_QUERY = """
query questionList($categorySlug: String, $limit: Int, $skip: Int, $filters: QuestionListFilterInput) {
  questionList(categorySlug: $categorySlug, limit: $limit, skip: $skip, filters: $filters) {
    totalNum
    data {
      questionFrontendId
      title
      titleSlug
      difficulty
      topicTags { name }
    }
  }
}
"""


class LeetCodeProblemSource:
    """Problem source backed by the LeetCode GraphQL API."""

    def __init__(
        self,
        *,
        graphql_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self.graphql_url = graphql_url or settings.leetcode_graphql_url
        self.timeout = timeout or constants.PROBLEM_SOURCE_TIMEOUT_SECONDS
        self._transport = transport
        self._rng = rng or random.Random()

    async def _question_at(self, skip: int) -> Problem:
        payload = {
            "query": _QUESTION_LIST_QUERY,
            "variables": {"categorySlug": "", "skip": skip, "limit": 1, "filters": {}},
        }
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(self.graphql_url, json=payload)
                response.raise_for_status()
                body: dict[str, Any] = response.json()
        except httpx.HTTPError as e:
            logger.error("LeetCode request failed", extra={"skip": skip, "error": str(e)})
            raise ProblemSourceUnavailableError from e
        except ValueError as e:
            logger.error("LeetCode returned malformed JSON", extra={"skip": skip})
            raise ProblemSourceUnavailableError from e

        questions = ((body.get("data") or {}).get("questionList") or {}).get("data") or []
        if not questions:
            raise ProblemNotFoundError(f"No LeetCode problem at offset {skip}.")

        question = questions[0]
        frontend_id = question.get("questionFrontendId")
        return Problem(
            problem_id=int(frontend_id) if str(frontend_id).isdigit() else None,
            title=question["title"],
            slug=question["titleSlug"],
            difficulty=question.get("difficulty") or "",
            topic_tags=[tag["name"] for tag in question.get("topicTags") or []],
        )

    async def fetch_by_id(self, problem_id: int) -> Problem:
        """Fetch a problem by the ID shown on LeetCode (1-based)."""
        with span("problem_source.leetcode.fetch_by_id"):
            if problem_id < 1:
                raise ProblemNotFoundError(f"Invalid problem id {problem_id}.")
            return await self._question_at(problem_id - 1)

    async def fetch_random(self) -> Problem:
        """Fetch a uniformly random problem from the first catalog entries."""
        with span("problem_source.leetcode.fetch_random"):
            return await self._question_at(self._rng.randrange(constants.PROBLEM_CATALOG_SIZE))


class StaticProblemSource:
    """Problem source serving a fixed list; used offline and in tests."""

    def __init__(self, problems: list[Problem], *, rng: random.Random | None = None) -> None:
        self.problems = list(problems)
        self._rng = rng or random.Random()

    async def fetch_by_id(self, problem_id: int) -> Problem:
        for problem in self.problems:
            if problem.problem_id == problem_id:
                return problem
        raise ProblemNotFoundError(f"Problem {problem_id} not found.")

    async def fetch_random(self) -> Problem:
        if not self.problems:
            raise ProblemNotFoundError("No problems available.")
        return self._rng.choice(self.problems)


class ProblemListCache:
    """Thread-safe cache of curated problem lists loaded from CSV files.

    Each list lives at `<directory>/<list_name>.csv` with an `id,slug,tag`
    header. Rows with fewer than three columns or a non-numeric ID are skipped.
    """

    def __init__(self, directory: str | Path | None = None) -> None:
        self.directory = Path(directory or settings.problem_list_dir)
        self._lists: dict[str, list[Problem]] = {}
        self._lock = threading.Lock()

    def load(self, list_name: str) -> list[Problem]:
        """Return the list, reading it from disk on first use."""
        cached = self._lists.get(list_name)
        if cached is not None:
            return cached

        with self._lock:
            cached = self._lists.get(list_name)
            if cached is not None:
                return cached

            problems = self._read_csv(list_name)
            self._lists[list_name] = problems
            logger.info("Loaded problem list", extra={"list_name": list_name, "count": len(problems)})
            return problems

    def _read_csv(self, list_name: str) -> list[Problem]:
        path = self.directory / f"{list_name}.csv"
        try:
            with path.open(newline="", encoding="utf-8") as f:
                rows = list(csv.reader(f))
        except OSError as e:
            raise ProblemNotFoundError(f"Problem list {list_name} could not be read.") from e

        problems = []
        for row in rows[1:]:
            if len(row) < 3 or not row[0].strip().isdigit():
                continue
            problems.append(
                Problem(problem_id=int(row[0]), title="", slug=row[1].strip(), topic_tags=[row[2].strip()])
            )

        if not problems:
            raise ProblemNotFoundError(f"No problems found in {list_name}.csv.")
        return problems

    def clear(self) -> None:
        """Forget every loaded list."""
        with self._lock:
            self._lists.clear()


class CuratedListProblemSource:
    """Random picks from a curated list, hydrated through a catalog source."""

    def __init__(
        self,
        *,
        cache: ProblemListCache,
        list_name: str,
        catalog: ProblemSource,
        rng: random.Random | None = None,
    ) -> None:
        self.cache = cache
        self.list_name = list_name
        self.catalog = catalog
        self._rng = rng or random.Random()

    async def fetch_by_id(self, problem_id: int) -> Problem:
        return await self.catalog.fetch_by_id(problem_id)

    async def fetch_random(self) -> Problem:
        with span("problem_source.curated.fetch_random"):
            entry = self._rng.choice(self.cache.load(self.list_name))
            return await self.catalog.fetch_by_id(entry.problem_id or 0)


DEFAULT_STATIC_PROBLEMS = [
    Problem(problem_id=1, title="Two Sum", slug="two-sum", difficulty="Easy", topic_tags=["Array", "Hash Table"]),
    Problem(
        problem_id=20,
        title="Valid Parentheses",
        slug="valid-parentheses",
        difficulty="Easy",
        topic_tags=["String", "Stack"],
    ),
    Problem(
        problem_id=200,
        title="Number of Islands",
        slug="number-of-islands",
        difficulty="Medium",
        topic_tags=["Array", "Depth-First Search", "Breadth-First Search", "Union Find", "Matrix"],
    ),
]

_default_source: ProblemSource | None = None
_default_list_cache: ProblemListCache | None = None


def _build_default_source() -> ProblemSource:
    global _default_list_cache

    catalog: ProblemSource
    if settings.problem_source == "static":
        catalog = StaticProblemSource(DEFAULT_STATIC_PROBLEMS)
    else:
        catalog = LeetCodeProblemSource()

    if not settings.problem_list_name:
        return catalog

    if _default_list_cache is None:
        _default_list_cache = ProblemListCache()
    return CuratedListProblemSource(cache=_default_list_cache, list_name=settings.problem_list_name, catalog=catalog)


def get_default_problem_source() -> ProblemSource:
    """Return the process-wide problem source, building it from settings on first use."""
    global _default_source
    if _default_source is None:
        _default_source = _build_default_source()
        logger.info("Problem source configured", extra={"source": type(_default_source).__name__})
    return _default_source


def set_default_problem_source(source: ProblemSource) -> None:
    """Install a problem source for the whole process."""
    global _default_source
    _default_source = source


def reset_default_problem_source() -> None:
    """Drop the installed source and any cached curated lists."""
    global _default_source, _default_list_cache
    _default_source = None
    if _default_list_cache is not None:
        _default_list_cache.clear()
    _default_list_cache = None
