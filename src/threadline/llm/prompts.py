"""System prompt template and thread content builder for Gemini."""

from threadline.models import DiscussionThread

_SYSTEM_PROMPT = """\
You turn team discussions into tracked follow-up tasks. You receive one \
discussion thread{source_context} and return a summary plus the actionable \
tasks it contains.

## Summary
- summary: 2-3 sentences. What is being discussed and what was decided.
- key_points: up to 5 concrete points or decisions, most important first.
- sentiment: positive, neutral, or negative.
- confidence: how sure you are the summary and tasks reflect the thread (0.0-1.0).

## Tasks
- Identify specific, actionable tasks that are requested or clearly implied.
- One task per distinct piece of work. Never split one request into several tasks.
- Maximum {max_tasks} tasks. If there is nothing to do, return an empty list.
- title: short and imperative ("Update the dashboard header").
- description: what needs to happen, quoting deadlines and constraints from the thread.
- priority: urgent only for explicit emergencies; high when a near deadline is stated; \
low for nice-to-haves; medium otherwise.
- assignee: the handle of the person asked to do it, or null.
- Never invent work that nobody asked for.
"""


def build_system_prompt(source_type: str | None = None, max_tasks: int = 5, custom_prompt: str | None = None) -> str:
    """Assemble the system prompt, appending team-specific instructions if configured."""
    source_context = f" from {source_type}" if source_type else ""
    prompt = _SYSTEM_PROMPT.format(source_context=source_context, max_tasks=max_tasks)
    if custom_prompt:
        prompt += f"\n## Team instructions\n{custom_prompt.strip()}\n"
    return prompt


def build_thread_content(thread: DiscussionThread) -> str:
    """Render the thread as plain text, root first then replies in order."""
    lines = [f"Root message by {thread.root_message.author_handle}:", thread.root_message.content, ""]
    for reply in thread.replies:
        lines.append(f"Reply by {reply.author_handle}:")
        lines.append(reply.content)
        lines.append("")
    if thread.participants:
        lines.append(f"Participants: {', '.join(thread.participants)}")
    return "\n".join(lines).strip()
