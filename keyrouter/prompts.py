"""
Prompt builders for the productivity assistant features.
Each builder is a pure function: domain data in, prompt string out.
The router treats the result as an opaque payload.

Builders:
    daily_plan       : prioritized plan from tasks, habits and today's stats
    task_suggestions : focus / delegate / quick-win analysis
    habit_insights   : streak patterns and coaching
    task_breakdown   : JSON array of subtasks
    finance_insights : spending trends from recent transactions
    note_summary     : bullet summary plus action items
"""


def _duration(seconds: int) -> str:
    seconds = int(seconds or 0)
    return f"{seconds // 3600}h {(seconds % 3600) // 60}m"


# =============================================================================
# PLANNING
# =============================================================================

def build_daily_plan_prompt(tasks: list[dict], habits: list[dict], today_stats: dict) -> str:
    task_lines = "\n".join(
        f"- [{t.get('priority', 'medium')}] {t.get('title', '')} (Status: {t.get('status', 'todo')})"
        for t in tasks
    )
    habit_lines = "\n".join(
        f"- {h.get('name', '')} (Current Streak: {h.get('current_streak', 0)})"
        for h in habits
    )
    return f"""You are a productivity assistant. Generate a personalized daily plan based on the following user data:

**Today's Tasks ({len(tasks)} total):**
{task_lines}

**Habits to Complete:**
{habit_lines}

**Today's Work Stats:**
- Work Time: {_duration(today_stats.get('total_work_seconds', 0))}
- Productivity Score: {today_stats.get('productivity_score', 0)}%

Please provide:
1. A prioritized task list for today
2. Suggested time blocks for focused work
3. Habit reminders
4. Motivational insight

Keep the response concise and actionable (max 300 words)."""


def build_task_suggestions_prompt(tasks: list[dict]) -> str:
    task_lines = "\n".join(
        f"{i + 1}. {t.get('title', '')} - Priority: {t.get('priority', 'medium')}, "
        f"Due: {t.get('due_date') or 'None'}, Status: {t.get('status', 'todo')}"
        for i, t in enumerate(tasks)
    )
    return f"""You are a task management expert. Analyze these tasks and provide prioritization suggestions:

{task_lines}

Provide:
1. Top 3 tasks to focus on today
2. Tasks that can be delegated or postponed
3. Quick wins (tasks that can be completed quickly)

Keep response brief (max 200 words)."""


def build_task_breakdown_prompt(title: str, description: str = "") -> str:
    return f"""You are a project manager. Break down this task into smaller, actionable subtasks:
Task: "{title}"
Description: "{description or 'No description provided'}"

Provide a JSON array of strings, where each string is a subtask.
Example format:
["Subtask 1", "Subtask 2", "Subtask 3"]

Do not include any markdown formatting or extra text. Just the JSON array."""


# =============================================================================
# INSIGHTS
# =============================================================================

def build_habit_insights_prompt(habits: list[dict]) -> str:
    habit_lines = "\n".join(
        f"- {h.get('name', '')}: Current Streak {h.get('current_streak', 0)} days, "
        f"Best Streak {h.get('best_streak', 0)} days, "
        f"Total Completions: {h.get('total_completions', 0)}"
        for h in habits
    )
    return f"""You are a habit coach. Analyze these habits and provide insights:

{habit_lines}

Provide:
1. Patterns you notice
2. Encouragement for strong habits
3. Suggestions for struggling habits
4. One actionable tip to improve consistency

Keep response motivational and concise (max 250 words)."""


def build_finance_insights_prompt(transactions: list[dict]) -> str:
    lines = "\n".join(
        f"- {str(t.get('date', ''))[:10]}: {t.get('description', '')} "
        f"({t.get('amount', 0)} {t.get('type', 'expense')}) - Category: {t.get('category', 'other')}"
        for t in transactions
    )
    return f"""You are a financial advisor. Analyze these recent transactions:
{lines}

Provide:
1. Spending trends (e.g., "You spent 20% more on food this month")
2. Saving opportunities
3. A quick financial tip

Keep response concise (max 200 words)."""


def build_note_summary_prompt(content: str) -> str:
    return f"""You are an expert summarizer. Summarize the following note into concise bullet points and extract any action items:

"{content}"

Format:
**Summary:**
- Point 1
- Point 2

**Action Items:**
- [ ] Item 1
- [ ] Item 2"""
