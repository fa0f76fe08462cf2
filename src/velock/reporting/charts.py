"""Chart generation using Plotly."""

from typing import Dict, List

import plotly.graph_objects as go

from ..engine.accumulator import HarvestReport
from ..engine.treasury import TreasurySnapshot

THEME = {
    "text": "#e8eaed",
    "text_secondary": "#9aa0a6",
    "grid": "rgba(30, 33, 36, 0.8)",
    "cyan": "#00d4ff",
    "cyan_fill": "rgba(0, 212, 255, 0.12)",
    "amber": "#ffab00",
    "amber_fill": "rgba(255, 171, 0, 0.12)",
    "red": "#ff5252",
    "green": "#00e676",
    "green_fill": "rgba(0, 230, 118, 0.12)",
}

WEEK_SECONDS = 7 * 86400


def apply_dark_layout(fig: go.Figure, title: str, x_title: str, y_title: str, showlegend: bool = True) -> None:
    """Apply the dark workbench layout - compact and professional."""
    fig.update_layout(
        title={
            "text": title,
            "x": 0,
            "xanchor": "left",
            "font": {"size": 11, "color": THEME["text_secondary"], "family": "Inter, -apple-system, sans-serif"}
        },
        xaxis_title=x_title,
        yaxis_title=y_title,
        hovermode="x unified",
        template="plotly_dark",
        height=340,
        margin=dict(l=50, r=20, t=40, b=40),
        showlegend=showlegend,
        legend=dict(orientation="h", yanchor="bottom", y=1.02, xanchor="left", x=0, bgcolor="rgba(0,0,0,0)"),
        plot_bgcolor="rgba(8, 9, 10, 1)",
        paper_bgcolor="rgba(8, 9, 10, 1)",
        font={"color": THEME["text"], "family": "Inter, -apple-system, sans-serif", "size": 11},
        xaxis=dict(gridcolor=THEME["grid"], zerolinecolor=THEME["grid"]),
        yaxis=dict(gridcolor=THEME["grid"], zerolinecolor=THEME["grid"]),
    )


def _weeks(snapshots: List[TreasurySnapshot]) -> List[float]:
    start = snapshots[0].t if snapshots else 0
    return [(s.t - start) / WEEK_SECONDS for s in snapshots]


def create_lock_chart(snapshots: List[TreasurySnapshot], decimals: int = 18) -> go.Figure:
    """Locked principal and receipt supply over time."""
    scale = 10 ** decimals
    times = _weeks(snapshots)

    fig = go.Figure()
    fig.add_trace(go.Scatter(
        x=times,
        y=[s.locked_amount / scale for s in snapshots],
        name='Locked',
        mode='lines',
        line=dict(color=THEME["amber"], width=2),
        fill='tozeroy',
        fillcolor=THEME["amber_fill"]
    ))
    fig.add_trace(go.Scatter(
        x=times,
        y=[s.receipt_supply / scale for s in snapshots],
        name='Receipt supply',
        mode='lines',
        line=dict(color=THEME["cyan"], width=2, dash='dot')
    ))
    apply_dark_layout(fig, "Lock & Receipt Supply", "Time (weeks)", "Tokens")
    return fig


def create_pending_pool_chart(snapshots: List[TreasurySnapshot], decimals: int = 18) -> go.Figure:
    """Pending principal and accrued incentive held by the router."""
    scale = 10 ** decimals
    times = _weeks(snapshots)

    fig = go.Figure()
    fig.add_trace(go.Bar(
        x=times,
        y=[s.pending_principal / scale for s in snapshots],
        name='Pending principal',
        marker_color=THEME["cyan"]
    ))
    fig.add_trace(go.Bar(
        x=times,
        y=[s.pending_incentive / scale for s in snapshots],
        name='Accrued incentive',
        marker_color=THEME["amber"]
    ))
    fig.update_layout(barmode='stack')
    apply_dark_layout(fig, "Pending Pool", "Time (weeks)", "Tokens")
    return fig


def create_harvest_split_chart(harvests: List[HarvestReport], decimals: int = 18) -> go.Figure:
    """Where harvested rewards went, summed over all harvests."""
    scale = 10 ** decimals
    totals: Dict[str, float] = {}
    for report in harvests:
        for receiver, amount in report.charges:
            totals[receiver] = totals.get(receiver, 0.0) + amount / scale
        totals['claimer'] = totals.get('claimer', 0.0) + report.claimer_fee / scale
        totals['gauge'] = totals.get('gauge', 0.0) + report.forwarded / scale

    fig = go.Figure(go.Pie(
        labels=list(totals.keys()),
        values=list(totals.values()),
        hole=0.5,
        marker=dict(colors=[THEME["amber"], THEME["red"], THEME["text_secondary"], THEME["green"], THEME["cyan"]])
    ))
    apply_dark_layout(fig, "Harvest Distribution", "", "", showlegend=True)
    return fig
