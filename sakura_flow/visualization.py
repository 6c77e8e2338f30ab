#!/usr/bin/env python3
import matplotlib.pyplot as plt
import numpy as np


def create_visualization(result, bed, bed_initial, filepath, title, show=False):
    """
    Generates and saves a figure of one flood: deposit, bed profile, flow snapshots and head track.
    """
    fig, axes = plt.subplots(2, 2, figsize=(14, 9), constrained_layout=True)
    fig.suptitle(f'Sakura: {title} - {result.state.value}, t={result.time:.0f}s', fontsize=16)
    x_km = result.x / 1000.

    # Deposit per grain class
    ax = axes[0, 0]
    for n, dep in enumerate(result.deposit):
        ax.plot(x_km, dep, label=f'Grain {n}')
    ax.plot(x_km, result.deposit.sum(axis=0), 'k-', linewidth=2, label='Total')
    ax.set_title('Deposit Thickness')
    ax.set_ylabel('Thickness (m)')
    ax.legend()

    # Bed profile
    ax = axes[0, 1]
    ax.plot(bed_initial.x / 1000., bed_initial.depth, color='gray', linestyle='--', label='Initial Bed')
    ax.plot(bed.x / 1000., bed.depth, 'brown', label='Current Bed')
    ax.axhline(0., color='cyan', linewidth=1, label='Sea Level')
    ax.set_title('Bed Profile')
    ax.set_ylabel('Elevation (m)')
    ax.legend()

    # Flow snapshots
    ax = axes[1, 0]
    if result.snapshots:
        colors = plt.cm.viridis(np.linspace(0, 1, len(result.snapshots)))
        for snap, color in zip(result.snapshots, colors):
            ax.plot(x_km, snap['h'], color=color)
        ax2 = ax.twinx()
        for snap, color in zip(result.snapshots, colors):
            ax2.plot(x_km, snap['u'], color=color, linestyle=':')
        ax2.set_ylabel('Velocity (m/s), dotted')
    ax.set_title('Flow Thickness (solid) and Velocity (dotted)')
    ax.set_ylabel('Thickness (m)')

    # Head position over time
    ax = axes[1, 1]
    if result.metrics.get('time'):
        ax.plot(result.metrics['time'], np.asarray(result.metrics['x_head']) / 1000., 'r-')
    ax.set_title('Flow Head Position')
    ax.set_xlabel('Time (s)')
    ax.set_ylabel('Head Position (km)')

    for ax in axes.flat:
        ax.grid(True, linestyle=':', alpha=0.6)
    for ax in (axes[0, 0], axes[0, 1], axes[1, 0]):
        ax.set_xlabel('Downstream Position (km)')

    plt.savefig(filepath, dpi=120)

    if show:
        plt.show()

    plt.close(fig)


def plot_total_deposit(x, deposit, bed_initial, bed, filepath, title):
    """Deposit summed over every flood and grain class, with the final bed."""
    fig, axes = plt.subplots(2, 1, figsize=(12, 8), sharex=True, constrained_layout=True)
    fig.suptitle(f'Sakura: {title} - all floods', fontsize=16)

    ax = axes[0]
    ax.fill_between(x / 1000., 0., deposit.sum(axis=0), color='sandybrown')
    ax.set_ylabel('Deposit Thickness (m)')

    ax = axes[1]
    ax.plot(bed_initial.x / 1000., bed_initial.depth, color='gray', linestyle='--', label='Initial Bed')
    ax.plot(bed.x / 1000., bed.depth, 'brown', label='Final Bed')
    ax.set_xlabel('Downstream Position (km)')
    ax.set_ylabel('Elevation (m)')
    ax.legend()

    for ax in axes:
        ax.grid(True, linestyle=':', alpha=0.6)

    plt.savefig(filepath, dpi=120)
    plt.close(fig)
