"""Render the learning-log dashboard as PNG charts.

Writes heatmap.png (calendar heatmap), weekly_trend.png and treemap.png
into the output directory.

Usage:
    python til_viz.py til_entries.json [output_dir]
"""

from __future__ import annotations

import os
import sys

import matplotlib

matplotlib.use("Agg")
import matplotlib.pyplot as plt
import pandas as pd
import seaborn as sns
from matplotlib.colors import ListedColormap
from matplotlib.patches import Rectangle

from analytics import build_dashboard_payload
from entries import load_dashboard_input
from treemap import compute_treemap_layout

# GitHub-like greens, level 0..4
LEVEL_COLORS = ["#ebedf0", "#9be9a8", "#40c463", "#30a14e", "#216e39"]
WEEKDAY_LABELS = ["Mon", "", "Wed", "", "Fri", "", ""]


def heatmap_frame(cells: list[dict]) -> pd.DataFrame:
    """Pivot heatmap cells into a weekday x week grid of levels.

    Rows are weekdays (0 = Monday), columns are week numbers counted
    from the Monday on or before the first cell.  Days outside the
    window are NaN.
    """
    df = pd.DataFrame(cells)
    if df.empty:
        return pd.DataFrame(index=range(7))
    df["date"] = pd.to_datetime(df["date"])
    first = df["date"].min()
    first_monday = first - pd.to_timedelta(first.weekday(), unit="D")
    df["week"] = (df["date"] - first_monday).dt.days // 7
    df["weekday"] = df["date"].dt.weekday
    return df.pivot(index="weekday", columns="week", values="level").reindex(range(7))


def plot_heatmap(payload: dict, path: str) -> None:
    grid = heatmap_frame(payload["heatmap"]["cells"])
    cmap = ListedColormap(LEVEL_COLORS)
    plt.figure(figsize=(15, 3))
    sns.heatmap(
        grid,
        cmap=cmap,
        vmin=-0.5,
        vmax=4.5,
        cbar=False,
        linewidths=1.5,
        linecolor="white",
        square=True,
        xticklabels=False,
        yticklabels=WEEKDAY_LABELS,
    )
    plt.title(f"Activity, last {len(payload['heatmap']['cells'])} days", fontsize=12, pad=10)
    plt.xlabel("")
    plt.ylabel("")
    plt.tight_layout()
    plt.savefig(path, dpi=200, bbox_inches="tight")
    plt.close()


def plot_weekly_trend(payload: dict, path: str) -> None:
    df = pd.DataFrame(payload["weekly_trend"])
    plt.figure(figsize=(12, 5))
    plt.bar(df["week_label"], df["count"], alpha=0.7, color="seagreen", label="Entries per week")
    plt.plot(df["week_label"], df["count"].rolling(window=4, min_periods=1).mean(),
             color="red", linewidth=2, label="4-week Average")
    plt.title("Weekly Entries", fontsize=14, pad=20)
    plt.xlabel("Week starting", fontsize=12)
    plt.ylabel("Entries", fontsize=12)
    plt.grid(True, alpha=0.3)
    plt.legend()
    plt.xticks(rotation=45)
    plt.tight_layout()
    plt.savefig(path, dpi=200, bbox_inches="tight")
    plt.close()


def plot_treemap(payload: dict, path: str, width: float = 16.0, height: float = 9.0) -> None:
    rects = compute_treemap_layout(payload["category_distribution"], width, height)
    palette = sns.color_palette("Set2", max(len(rects), 1))
    fig, ax = plt.subplots(figsize=(width, height))
    for r in rects:
        ax.add_patch(
            Rectangle(
                (r["x"], height - r["y"] - r["height"]),
                r["width"],
                r["height"],
                facecolor=palette[r["color_index"] % len(palette)],
                edgecolor="white",
                linewidth=2,
            )
        )
        ax.text(
            r["x"] + r["width"] / 2,
            height - r["y"] - r["height"] / 2,
            f"{r['name']}\n{r['count']} ({r['percentage']}%)",
            ha="center",
            va="center",
            fontsize=11,
        )
    ax.set_xlim(0, width)
    ax.set_ylim(0, height)
    ax.axis("off")
    ax.set_title("Entries by Category", fontsize=14, pad=20)
    fig.savefig(path, dpi=200, bbox_inches="tight")
    plt.close(fig)


def render_all(payload: dict, output_dir: str) -> list[str]:
    """Write every chart for *payload* into *output_dir* and return the paths."""
    os.makedirs(output_dir, exist_ok=True)
    paths = [
        os.path.join(output_dir, "heatmap.png"),
        os.path.join(output_dir, "weekly_trend.png"),
        os.path.join(output_dir, "treemap.png"),
    ]
    plot_heatmap(payload, paths[0])
    plot_weekly_trend(payload, paths[1])
    plot_treemap(payload, paths[2])
    return paths


if __name__ == "__main__":
    input_path = sys.argv[1] if len(sys.argv) > 1 else "til_entries.json"
    output_dir = sys.argv[2] if len(sys.argv) > 2 else "til_analytics"
    dashboard_input = load_dashboard_input(input_path)
    payload = build_dashboard_payload(dashboard_input.entries, dashboard_input.root, dashboard_input.backlog)
    render_all(payload, output_dir)
    print(f"Charts have been saved in the '{output_dir}' directory")
