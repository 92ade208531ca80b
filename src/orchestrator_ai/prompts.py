"""
Agent instructions and prompt builders.

Every model call is a single prompt: the role's instruction text followed by
the step-specific request. Planning and re-planning ask for a structured task
list matching task_list_schema().
"""

import json
from typing import Iterable, Sequence

from .errors import ParseFailureError
from .models import AgentRole, Task, TaskStatus

# Re-planning may add at most this many tasks (instruction to the model)
MAX_NEW_TASKS = 5

# Characters of each completed result shown to the supervisor when re-planning
RESULT_PREVIEW_CHARS = 300

EMPTY_TASK_OUTPUT = "Task completed, but no text output generated."
EMPTY_FINAL_OUTPUT = "Final output generation failed."

AGENT_ICONS = {
	AgentRole.SUPERVISOR: "👑",
	AgentRole.RESEARCHER: "🔍",
	AgentRole.ANALYST: "📊",
	AgentRole.WRITER: "✍️",
	AgentRole.EDITOR: "📝",
	AgentRole.CODER: "💻",
}

AGENT_DESCRIPTIONS = {
	AgentRole.SUPERVISOR: "Orchestrates the workflow.",
	AgentRole.RESEARCHER: "Searches the web.",
	AgentRole.ANALYST: "Analyzes data.",
	AgentRole.WRITER: "Drafts content.",
	AgentRole.EDITOR: "Refines content.",
	AgentRole.CODER: "Writes code.",
}

DEFAULT_AGENT_PROMPTS = {
	AgentRole.SUPERVISOR: """You are an expert Supervisor Agent.
Your goal is to break down the user's complex request into a detailed, granular list of sequential tasks.

Rules:
1. Break the workflow into small, granular steps.
2. Generate between 10 and 50 tasks depending on complexity.
3. The first task is usually for the Researcher.
4. Assign the most appropriate agent for each step.
5. The tasks must be strictly sequential.
6. Give each task a clear, actionable description.
7. You are an AI model. You cannot perform physical experiments, make phone calls, conduct primary field research or interact with the physical world. Limit tasks to digital research, data analysis, coding and writing.""",

	AgentRole.RESEARCHER: """You are a Researcher Agent.
Your goal is to find accurate, up-to-date information using web search.
Verify sources where possible. Provide comprehensive findings.""",

	AgentRole.ANALYST: """You are an Analyst Agent.
Your goal is to process data, identify patterns and derive insights from the provided context.
Be logical, objective and detailed.""",

	AgentRole.WRITER: """You are a Writer Agent.
Your goal is to draft high-quality content based on the research and analysis provided.
Adapt your tone to the requirement.""",

	AgentRole.EDITOR: """You are an Editor Agent.
Your goal is to refine, polish and structure content.
Check for clarity, grammar and flow.""",

	AgentRole.CODER: """You are a Coder Agent.
Your goal is to write clean, efficient, well-commented code.
Explain your logic.""",
}


def task_list_schema() -> dict:
	"""JSON schema for supervisor plans: an object wrapping the ordered task list."""
	return {
		"type": "object",
		"properties": {
			"tasks": {
				"type": "array",
				"items": {
					"type": "object",
					"properties": {
						"title": {"type": "string"},
						"description": {"type": "string"},
						"assignedAgent": {
							"type": "string",
							"enum": [role.value for role in AgentRole],
						},
					},
					"required": ["title", "description", "assignedAgent"],
					"additionalProperties": False,
				},
			},
		},
		"required": ["tasks"],
		"additionalProperties": False,
	}


def _match_role(name: str) -> AgentRole:
	lowered = str(name).strip().lower()
	for role in AgentRole:
		if role.value.lower() == lowered:
			return role
	raise ParseFailureError(f"Unknown agent role: {name!r}")


def parse_task_list(text: str, id_seed: int) -> tuple[Task, ...]:
	"""
	Parse supervisor output into pending tasks.

	Accepts {"tasks": [...]} or a bare JSON array. Task ids are
	"task-<id_seed>-<position>".

	Raises:
		ParseFailureError: If the text is not a well-formed task list
	"""
	try:
		data = json.loads(text or "[]")
	except json.JSONDecodeError as e:
		raise ParseFailureError(f"Invalid JSON: {e}") from e

	if isinstance(data, dict):
		data = data.get("tasks")
	if not isinstance(data, list):
		raise ParseFailureError("Expected a list of tasks")

	tasks = []
	for index, raw in enumerate(data):
		if not isinstance(raw, dict):
			raise ParseFailureError(f"Task {index} is not an object")
		try:
			title = raw["title"]
			description = raw["description"]
			agent = raw["assignedAgent"]
		except KeyError as e:
			raise ParseFailureError(f"Task {index} is missing {e.args[0]!r}") from e
		tasks.append(Task(
			id=f"task-{id_seed}-{index}",
			title=str(title),
			description=str(description),
			assigned_agent=_match_role(agent),
		))
	return tuple(tasks)


def build_planning_prompt(instruction: str, query: str) -> str:
	return f'{instruction}\n\nUser Request: "{query}"\n\nReturn the tasks as JSON.'


def _preview(result: str | None) -> str:
	if not result:
		return "Done"
	return result[:RESULT_PREVIEW_CHARS] + "..."


def build_replanning_prompt(
	instruction: str,
	query: str,
	completed: Sequence[Task],
	remaining: Sequence[Task],
) -> str:
	"""Ask the supervisor to revise the not-yet-executed part of the plan."""
	progress = "\n".join(
		f"- [{t.assigned_agent.value}] {t.title}: {_preview(t.result)}" for t in completed
	)
	plan = "\n".join(f"- {t.title} ({t.assigned_agent.value})" for t in remaining)
	return f"""{instruction}

Original Objective: "{query}"

Progress so far (Completed Tasks):
{progress}

Current Remaining Plan:
{plan}

Your Task:
Evaluate the progress.
1. If findings require new tasks, add them to the remaining list.
2. If the current plan is valid, return it as is.
3. You can reorder tasks.

SCOPE CONSTRAINTS:
- You may add a MAXIMUM of {MAX_NEW_TASKS} new tasks.
- Do NOT expand the scope unless it is critical for the objective.
- Prefer completing the current plan over adding nice-to-have steps.

Return the *remaining* tasks as JSON (do not include completed ones)."""


def build_task_context(prior_tasks: Iterable[Task]) -> str:
	"""Context for a worker: titles and results of completed prior tasks."""
	return "\n\n".join(
		f"[Completed Task: {t.title}]\nResult: {t.result}"
		for t in prior_tasks
		if t.status == TaskStatus.COMPLETED
	)


def build_task_prompt(instruction: str, task: Task, context: str) -> str:
	context_text = context or "No previous context. You are starting the workflow."
	return f"""{instruction}

Your Task: {task.title}
Details: {task.description}

Context (Results from previous steps):
{context_text}
"""


def build_synthesis_context(tasks: Iterable[Task]) -> str:
	return "\n\n".join(f"Task: {t.title}\nResult: {t.result}" for t in tasks)


def build_synthesis_prompt(instruction: str, context: str) -> str:
	return f"""{instruction}

The team has finished all tasks.
Here are the accumulated work logs:
{context}

Compile this into a final, polished output for the user.
Format it with Markdown."""
