"""
Reply text for the relay handlers.

Every function here is pure: the same snapshot always renders to the same
text. Nothing time- or cache-dependent belongs in the output.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import List, Optional

from services.aoc.models import LeaderboardSnapshot, Member

PONG_TEXT = ":ping_pong: Pong!"

TRIVIA_TEXT = (
    ":exploding_head: The Answer to the Ultimate Question of Life, "
    "the Universe, and Everything is 42"
)

FETCH_FAILED_TEXT = (
    ":warning: Could not fetch the Advent of Code leaderboard right now. "
    "Please try again later."
)

PODIUM_SIZE = 3


def render_latency(latency_ms: int) -> str:
    return f"{PONG_TEXT} (latency: {latency_ms} ms)"


def rank_members(snapshot: LeaderboardSnapshot) -> List[Member]:
    """
    Members by local score, best first. Ties keep the payload order.
    """
    return sorted(
        snapshot.members.values(),
        key=lambda member: member.local_score,
        reverse=True,
    )


def format_timestamp(ts: Optional[datetime]) -> str:
    if ts is None:
        return "never"
    return ts.astimezone(timezone.utc).strftime("%Y-%m-%d %H:%M UTC")


def render_leaderboard(snapshot: LeaderboardSnapshot, board_id: str) -> str:
    lines = [f"Advent of Code {snapshot.event} | private leaderboard {board_id}"]

    ranked = rank_members(snapshot)
    if not ranked:
        lines.append("No members on this leaderboard yet.")

    for rank, member in enumerate(ranked, start=1):
        lines.append(
            f"#{rank} - {member.display_name} - {member.local_score} score - "
            f"{member.stars} stars - last solve {format_timestamp(member.last_solved_at)}"
        )

    return "\n".join(lines)


# ------------------------------------------------------------
# Podium
# ------------------------------------------------------------

def render_not_enough_members(count: int) -> str:
    return (
        f"Not enough members for a podium: need {PODIUM_SIZE}, "
        f"the leaderboard has {count}."
    )


def _podium_cells(member: Member) -> List[str]:
    # backticks would close the code block
    name = member.display_name.replace("`", "'")
    return [name, f"{member.local_score} pts", f"{member.stars} stars"]


def render_podium(snapshot: LeaderboardSnapshot) -> str:
    """
    Fixed three-step podium: winner in the middle on the tallest step,
    second place on the left, third on the right. Each step shows name,
    score and stars above it.
    """
    ranked = rank_members(snapshot)
    if len(ranked) < PODIUM_SIZE:
        return render_not_enough_members(len(ranked))

    first, second, third = (_podium_cells(m) for m in ranked[:PODIUM_SIZE])
    width = max(len(cell) for cell in first + second + third) + 4
    inner = width - 2

    def block(place: int) -> List[str]:
        return ["+" + "-" * inner + "+", "|" + str(place).center(inner) + "|"]

    def pillar() -> str:
        return "|" + " " * inner + "|"

    blank = " " * width

    left = [blank] * 3 + second + block(2) + [pillar()] * 2
    middle = first + block(1) + [pillar()] * 5
    right = [blank] * 4 + third + block(3) + [pillar()]

    rows = []
    for l_cell, m_cell, r_cell in zip(left, middle, right):
        rows.append(
            (l_cell.center(width) + m_cell.center(width) + r_cell.center(width)).rstrip()
        )
    rows.append("=" * (width * 3))

    return "```\n" + "\n".join(rows) + "\n```"
