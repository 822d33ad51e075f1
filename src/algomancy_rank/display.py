"""Rich terminal display for algomancy-rank."""

from __future__ import annotations

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from algomancy_rank.ranks import RANKS

console = Console()

# Rank key -> Rich color name
_RANK_COLORS: dict[str, str] = {
    "awakened": "grey70",
    "subject": "dark_orange3",
    "catalyst": "deep_sky_blue1",
    "architect": "green3",
    "ascendant": "purple",
    "echelon": "gold1",
}

_RARITY_COLORS: dict[str, str] = {
    "common": "grey70",
    "uncommon": "medium_purple1",
    "rare": "orange1",
    "epic": "green3",
    "legendary": "red1",
}


def rank_color(key: str) -> str:
    return _RANK_COLORS.get(key, "white")


def format_number(n: int) -> str:
    """Format large numbers: 421543 -> '421.5K', 1200 -> '1,200', 1234567 -> '1.2M'."""
    if n >= 1_000_000:
        value = n / 1_000_000
        if value >= 100:
            return f"{value:.0f}M"
        return f"{value:.1f}M"
    if n >= 10_000:
        value = n / 1_000
        if value >= 1000:
            return f"{value:.0f}K"
        return f"{value:.1f}K"
    return f"{n:,}"


def _xp_bar(ratio: float, width: int = 20) -> str:
    """Render a progress bar as text: [████████░░░░░░░░░░░░]."""
    ratio = min(max(ratio, 0.0), 1.0)
    filled = int(ratio * width)
    return "[" + "█" * filled + "░" * (width - filled) + "]"


def print_profile(data: dict) -> None:
    """Print a user's rank, progress to the next tier, and bonus XP breakdown."""
    color = rank_color(data.get("rank_key", ""))
    achievement_xp = data.get("achievement_xp", 0)
    next_name = data.get("next_rank_name")
    next_xp = data.get("next_xp")

    lines: list[str] = []
    lines.append("")
    lines.append(f"  [bold {color}]{data.get('rank_name', 'Awakened')}[/]  {data.get('name', '')}")

    bar = _xp_bar(data.get("progress", 0.0))
    if next_name:
        lines.append(f"  {bar} {format_number(achievement_xp)}/{format_number(next_xp)} XP to {next_name}")
    else:
        lines.append(f"  {bar} TOP RANK")
    lines.append(f"  Achievement XP: [bold]{format_number(achievement_xp)}[/]")

    lines.append("")
    lines.append(f"  ❤️  Likes:  {format_number(data.get('like_xp', 0))} XP")
    lines.append(f"  \U0001f0cf Decks:  {format_number(data.get('deck_xp', 0))} XP")
    lines.append(f"  \U0001f4dc Logs:   {format_number(data.get('log_xp', 0))} XP")

    if data.get("stale"):
        lines.append("")
        lines.append("  [yellow]Stored XP is out of date. Run refresh.[/]")

    lines.append("")
    lines.append(f"  Badges: {data.get('badges_unlocked', 0)}/{data.get('badges_total', 0)}"
                 f"  (+{format_number(data.get('badge_xp', 0))} badge XP)")
    lines.append("")

    panel = Panel(
        "\n".join(lines),
        title="[bold]ALGOMANCY RANK[/]",
        box=box.ROUNDED,
        border_style=color,
        width=56,
    )
    console.print(panel)


def print_ranks(current_key: str | None = None) -> None:
    """Print the rank tier table, highlighting current_key if given."""
    table = Table(title="Ranks", box=box.ROUNDED, show_header=True, header_style="bold")
    table.add_column("Rank")
    table.add_column("Min XP", justify="right")
    table.add_column("Max XP", justify="right")

    for rank in RANKS:
        color = rank_color(rank.key)
        marker = " ◀" if rank.key == current_key else ""
        max_text = format_number(rank.max_xp) if rank.max_xp is not None else "∞"
        table.add_row(f"[{color}]{rank.name}[/]{marker}", format_number(rank.min_xp), max_text)

    console.print(table)


def print_achievements(achievements: list[dict]) -> None:
    """Print all achievements with progress bars.

    Each dict has: key, title, description, rarity, xp, progress (0.0-1.0),
    unlocked (bool), unlocked_at (str|None).
    """
    unlocked = [a for a in achievements if a.get("unlocked")]
    locked = [a for a in achievements if not a.get("unlocked")]
    unlocked.sort(key=lambda a: a.get("unlocked_at") or "", reverse=True)
    locked.sort(key=lambda a: a.get("progress", 0), reverse=True)

    table = Table(title="Achievements", box=box.ROUNDED, show_header=True, header_style="bold")
    table.add_column("", width=2)
    table.add_column("Achievement", min_width=20)
    table.add_column("Rarity", width=10)
    table.add_column("Progress", min_width=18)
    table.add_column("Date", width=12)

    for ach in unlocked + locked:
        icon = "✅" if ach.get("unlocked") else "⏳"
        rarity = ach.get("rarity", "common")
        color = _RARITY_COLORS.get(rarity, "white")
        progress = ach.get("progress", 0.0)
        table.add_row(
            icon,
            f"[bold]{ach['title']}[/]\n{ach.get('description', '')}",
            f"[{color}]{ach.get('rarity_label', rarity.capitalize())}[/{color}]\n+{ach.get('xp', 0)} XP",
            f"{_xp_bar(progress, width=10)} {int(progress * 100)}%",
            (ach.get("unlocked_at") or "")[:10],
        )

    console.print(table)


def print_refresh_result(result: dict) -> None:
    """Print the outcome of an XP refresh or award run."""
    lines: list[str] = [""]
    lines.append(f"  User:            {result.get('user_id')}")
    lines.append(f"  Achievement XP:  {format_number(result.get('previous_xp', 0))} → "
                 f"{format_number(result.get('achievement_xp', 0))}")
    lines.append(f"  Rank:            {result.get('rank_name', 'Awakened')}")

    unlocked = result.get("unlocked", [])
    if unlocked:
        lines.append("")
        lines.append("  [bold]New Achievements:[/]")
        for title in unlocked:
            lines.append(f"  \U0001f3c6 {title}")

    rank_up = result.get("rank_up")
    if rank_up:
        lines.append("")
        lines.append(f"  [bold yellow]RANK UP![/] {rank_up}")
    lines.append("")

    console.print(Panel(
        "\n".join(lines),
        title="[bold]Refresh Complete[/]",
        box=box.ROUNDED,
        border_style="green",
        width=56,
    ))


def print_backfill(rows: list[dict], dry_run: bool = False) -> None:
    """Print one row per processed user."""
    title = "Backfill (dry run)" if dry_run else "Backfill"
    table = Table(title=title, box=box.ROUNDED, show_header=True, header_style="bold")
    table.add_column("User")
    table.add_column("Badges", justify="right")
    table.add_column("XP", justify="right")
    for row in rows:
        table.add_row(row["label"], str(len(row["badges"])), format_number(row["achievement_xp"]))
    console.print(table)


def print_leaderboard(entries: list[dict], limit: int | None = None) -> None:
    """Print users ranked by achievement XP."""
    if not entries:
        console.print("[grey50]No users yet.[/]")
        return

    table = Table(title="Leaderboard", box=box.ROUNDED, show_header=True, header_style="bold")
    table.add_column("#", justify="right", width=4)
    table.add_column("User", min_width=14)
    table.add_column("Rank", min_width=10)
    table.add_column("XP", justify="right")
    table.add_column("Likes", justify="right")

    for entry in entries[:limit] if limit else entries:
        table.add_row(
            str(entry.get("rank", "")),
            entry.get("name", "?"),
            entry.get("rank_name", ""),
            format_number(entry.get("achievement_xp", 0)),
            format_number(entry.get("total_likes", 0)),
        )

    console.print(table)


def print_decks(decks: list[dict], sort_by: str) -> None:
    """Print public decks in the given order."""
    if not decks:
        console.print("[grey50]No public decks yet.[/]")
        return

    table = Table(title=f"Public Decks ({sort_by})", box=box.ROUNDED, show_header=True, header_style="bold")
    table.add_column("ID", justify="right")
    table.add_column("Deck", min_width=16)
    table.add_column("Owner")
    table.add_column("Views", justify="right")
    table.add_column("Likes", justify="right")
    table.add_column("Created", width=10)
    for deck in decks:
        marker = " ♥" if deck.get("liked") else ""
        table.add_row(
            str(deck["id"]),
            f"{deck['name']}{marker}",
            deck.get("owner_name", ""),
            format_number(deck.get("views", 0)),
            format_number(deck.get("likes", 0)),
            (deck.get("created_at") or "")[:10],
        )
    console.print(table)


def print_rates(rates: dict) -> None:
    """Print the active XP rates."""
    table = Table(title="XP Rates", box=box.ROUNDED, show_header=True, header_style="bold")
    table.add_column("Rate")
    table.add_column("Value", justify="right")
    for name, value in rates.items():
        table.add_row(name, str(value))
    console.print(table)


def print_error(message: str) -> None:
    console.print(f"[red]{message}[/]")
