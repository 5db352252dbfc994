"""
visualization.py
~~~~~~~~~~~~~~~~

Render a network snapshot as a PNG diagram.

Neurons are drawn as circles shaded by their last value, connections as lines
whose opacity follows the absolute weight (blue for positive, red for
negative), mirroring the canvas drawn by the browser visualizer.
"""

import base64
from io import BytesIO
from typing import Any, Dict

# Use non-GUI backend for matplotlib (required for server environments)
import matplotlib
matplotlib.use('Agg')
import matplotlib.pyplot as plt
from matplotlib.patches import Circle


def _layer_positions(count: int, tallest: int):
    """Vertical centers for a layer of ``count`` neurons, centered on the tallest layer."""
    offset = (tallest - count) / 2.0
    return [tallest - (offset + i + 0.5) for i in range(count)]


def render_network_diagram(snapshot: Dict[str, Any]) -> str:
    """
    Draw the network described by a snapshot.

    Args:
        snapshot: Output of :func:`mlp_backend.serialization.network_snapshot`

    Returns:
        Base64-encoded PNG image string
    """
    layers = snapshot['layers']
    tallest = max(len(layer['neurons']) for layer in layers)
    positions = [_layer_positions(len(layer['neurons']), tallest) for layer in layers]
    radius = 0.3

    fig, ax = plt.subplots(figsize=(2 + 2 * len(layers), 1 + tallest))

    for index in range(1, len(layers)):
        for j, neuron in enumerate(layers[index]['neurons']):
            for i, weight in enumerate(neuron['weights']):
                ax.plot(
                    [index - 1, index],
                    [positions[index - 1][i], positions[index][j]],
                    color='tab:blue' if weight >= 0 else 'tab:red',
                    alpha=min(abs(weight), 1.0),
                    linewidth=1.5,
                    zorder=1
                )

    for index, layer in enumerate(layers):
        for y, neuron in zip(positions[index], layer['neurons']):
            shade = min(max(neuron['value'], 0.0), 1.0)
            ax.add_patch(Circle(
                (index, y), radius,
                facecolor=(0.0, 0.48, 1.0, shade),
                edgecolor='black',
                zorder=2
            ))
            ax.text(index, y, f"{neuron['value']:.2f}",
                    ha='center', va='center', fontsize=8, zorder=3)

    ax.set_xlim(-0.6, len(layers) - 0.4)
    ax.set_ylim(-0.2, tallest + 0.2)
    ax.set_aspect('equal')
    ax.axis('off')
    ax.set_title(
        f"Epoch {snapshot.get('epoch', 0)} | Error {snapshot.get('error', 0.0):.4f}"
    )

    # Save image to a bytes buffer instead of a file
    buffer = BytesIO()
    fig.savefig(buffer, format='png', bbox_inches='tight')
    buffer.seek(0)
    img_base64 = base64.b64encode(buffer.getvalue()).decode('utf-8')
    plt.close(fig)

    return img_base64
