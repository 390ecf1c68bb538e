# selffin/llm_agent.py

import json
import logging
import threading
import time
from typing import List, Optional

from langchain_core.messages import HumanMessage, SystemMessage
from langchain_openai import ChatOpenAI

from selffin.config import get_settings
from selffin.database import analysis_table, init_db
from selffin.progress import ProgressAgent
from selffin.project import get_latest_simulation, get_project, require_schedule
from selffin.utils import utcnow_iso

logger = logging.getLogger(__name__)

# --- Token Bucket Implementation for Rate Limiting ---


class TokenBucket:
    def __init__(self, capacity, refill_rate):
        # capacity: maximum number of tokens in the bucket
        # refill_rate: tokens per second
        self.capacity = capacity
        self.tokens = capacity
        self.refill_rate = refill_rate
        self.last_refill = time.monotonic()
        self.lock = threading.Lock()

    def _refill(self):
        now = time.monotonic()
        elapsed = now - self.last_refill
        new_tokens = elapsed * self.refill_rate
        if new_tokens > 0:
            self.tokens = min(self.capacity, self.tokens + new_tokens)
            self.last_refill = now

    def consume(self, tokens=1):
        while True:
            with self.lock:
                self._refill()
                if self.tokens >= tokens:
                    self.tokens -= tokens
                    return
            time.sleep(0.1)


_settings = get_settings()
token_bucket = TokenBucket(_settings.llm_bucket_capacity, _settings.llm_refill_rate)

# --- End Token Bucket Implementation ---

# Maximum number of characters per chunk (adjust to keep well under token limit)
MAX_CHUNK_CHARS = 3000

PLAN_ACTIONS = ("fetch_schedule", "analyze_progress", "simulation_summary", "summarize", "finalize")


def get_llm():
    settings = get_settings()
    return ChatOpenAI(model=settings.llm_model, temperature=settings.llm_temperature)


def ask_llm(system_prompt: str, user_prompt: str) -> str:
    token_bucket.consume()
    response = get_llm().invoke([
        SystemMessage(content=system_prompt),
        HumanMessage(content=user_prompt),
    ])
    return response.content


def store_analysis(engine, project_id: str, prompt: str, analysis_text: str):
    with engine.begin() as conn:
        conn.execute(
            analysis_table.insert(),
            {
                "project_id": project_id,
                "prompt": prompt,
                "analysis_text": analysis_text,
                "timestamp": utcnow_iso(),
            },
        )


def format_tasks_table(schedule) -> str:
    if not schedule.tasks:
        return "No tasks found."
    table_md = "task_id | task_name | duration | start | finish | slack | critical\n"
    table_md += "--- | --- | --- | --- | --- | --- | ---\n"
    for t in schedule.tasks:
        table_md += (
            f"{t.id} | {t.name} | {t.duration:g} | {t.start_date} | {t.end_date} | "
            f"{t.slack:.1f} | {'yes' if t.is_critical else 'no'}\n"
        )
    return table_md


def format_simulation(result) -> str:
    if result is None:
        return "No simulation has been run."
    lines = [
        f"runs: {result.iterations}, mean {result.mean} days, "
        f"P50 {result.percentiles['p50']}, P90 {result.percentiles['p90']}",
        f"confidence of finishing on time: {result.confidence}%",
        f"recommended buffer: {result.buffer_days} days",
    ]
    for r in result.high_risk_tasks[:5]:
        lines.append(f"high risk: {r.task_name} ({r.risk_level}, criticality {r.criticality:.0%})")
    return "\n".join(lines)


def progress_tool(engine, project_id: str) -> str:
    result = ProgressAgent(engine).analyze_progress(project_id)
    if "error" in result:
        return f"ERROR: {result['error']}"
    return "\n".join(result.get("insights", []))


# --- Chunking Helpers with Progress ---


def chunk_text(text: str, max_chars: int = MAX_CHUNK_CHARS) -> list:
    if len(text) <= max_chars:
        return [text]
    lines = text.split("\n")
    chunks = []
    current_chunk = []
    current_length = 0
    for line in lines:
        if current_chunk and current_length + len(line) + 1 > max_chars:
            chunks.append("\n".join(current_chunk))
            current_chunk = [line]
            current_length = len(line)
        else:
            current_chunk.append(line)
            current_length += len(line) + 1
    if current_chunk:
        chunks.append("\n".join(current_chunk))
    return chunks


def summarize_chunk(chunk: str) -> str:
    return ask_llm(
        "you are a helpful renovation schedule assistant. "
        "please summarize the following context concisely.",
        f"Context:\n\n{chunk}\n\nProvide a concise summary.",
    )


def summarize_large_context(context: str) -> str:
    chunks = chunk_text(context, MAX_CHUNK_CHARS)
    summaries = []
    for i, chunk in enumerate(chunks, start=1):
        logger.info("summarizing chunk %d/%d", i, len(chunks))
        summaries.append(summarize_chunk(chunk))
    combined = "\n".join(summaries)
    return ask_llm(
        "you are a helpful renovation schedule assistant.",
        f"Here are individual summaries of different parts of the context:\n\n{combined}\n\n"
        "Please combine them into one final concise summary.",
    )


# --- End Chunking Helpers ---


def summarize_context(context: str) -> str:
    if len(context) > MAX_CHUNK_CHARS:
        return summarize_large_context(context)
    return ask_llm(
        "you are a helpful renovation schedule assistant. given a schedule analysis, "
        "point out the risks, the critical tasks and anything running behind.",
        f"here is the context:\n\n{context}\n\nplease summarize it concisely.",
    )


def generate_plan(user_query: str) -> list:
    raw = ask_llm(
        "you are a planning assistant for home renovation schedule analysis. "
        "given a user query, output a JSON array of steps to answer the query. "
        "each step must have an 'action' key (one of 'fetch_schedule', 'analyze_progress', "
        "'simulation_summary', 'summarize' or 'finalize') and a 'description' key explaining "
        "what to do. output only the JSON.",
        f"generate a plan in JSON for the following query: {user_query}",
    )
    try:
        plan = json.loads(raw)
        if isinstance(plan, list) and all(isinstance(s, dict) for s in plan):
            return plan
    except json.JSONDecodeError:
        pass
    logger.warning("could not parse plan, falling back to the default analysis")
    return [
        {"action": "fetch_schedule", "description": "load the schedule"},
        {"action": "finalize", "description": user_query},
    ]


def execute_plan(engine, project_id: str, plan: list) -> str:
    schedule = require_schedule(engine, project_id)
    results: List[str] = []
    for idx, step in enumerate(plan, start=1):
        action = step.get("action")
        description = step.get("description", "")
        logger.info("executing step %d/%d: %s", idx, len(plan), action)
        if action == "fetch_schedule":
            results.append(f"fetch_schedule result:\n{format_tasks_table(schedule)}\n")
        elif action == "analyze_progress":
            results.append(f"analyze_progress result:\n{progress_tool(engine, project_id)}\n")
        elif action == "simulation_summary":
            sim = get_latest_simulation(engine, project_id)
            results.append(f"simulation_summary result:\n{format_simulation(sim)}\n")
        elif action == "summarize":
            summary = summarize_context("\n".join(results))
            results.append(f"summarize result:\n{summary}\n")
        elif action == "finalize":
            context = "\n".join(results)
            if len(context) > MAX_CHUNK_CHARS:
                context = summarize_large_context(context)
            answer = ask_llm(
                "you are a helpful home renovation schedule assistant.",
                f"using the following context:\n\n{context}\n\n{description}\n\nprovide a final answer.",
            )
            results.append(f"finalize result:\n{answer}\n")
        else:
            results.append(f"unrecognized action: {action}\n")
    return results[-1] if results else "No steps executed."


def run_llm_agent(project_id: str, user_query: str, engine=None) -> str:
    engine = engine or init_db()
    get_project(engine, project_id)
    logger.info("generating plan for project %s", project_id)
    plan = generate_plan(user_query)
    final_text = execute_plan(engine, project_id, plan)
    store_analysis(engine, project_id, user_query, final_text)
    logger.info("analysis stored for project %s", project_id)
    return final_text


def fetch_analysis_history(engine, project_id: str, limit: Optional[int] = None) -> list:
    query = (
        analysis_table.select()
        .where(analysis_table.c.project_id == project_id)
        .order_by(analysis_table.c.id.desc())
    )
    if limit:
        query = query.limit(limit)
    with engine.connect() as conn:
        return [dict(r._mapping) for r in conn.execute(query)]
