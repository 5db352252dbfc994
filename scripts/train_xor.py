#!/usr/bin/env python3
"""
Train a small network on logical XOR and print what it learned.

Usage:
    python scripts/train_xor.py [--topology 2,2,1] [--epochs 10000]
                                [--learning-rate 0.5] [--seed 7]

The script will:
1. Build a network with the requested topology
2. Train it on the four XOR patterns with online backpropagation
3. Print the expected and actual output for every pattern
"""

import sys
import argparse

from mlp_backend.config import XOR_PATTERNS
from mlp_backend.errors import NetworkError
from mlp_backend.network import Network
from mlp_backend.serialization import parse_topology


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__.split('\n')[1])
    parser.add_argument('--topology', default='2,2,1',
                        help='comma separated layer widths (default: 2,2,1)')
    parser.add_argument('--epochs', type=int, default=10000)
    parser.add_argument('--learning-rate', type=float, default=0.5)
    parser.add_argument('--seed', type=int, default=None,
                        help='seed for weight initialization')
    return parser.parse_args(argv)


def main(argv=None) -> int:
    """Main training function."""
    args = parse_args(argv)

    print("=" * 60)
    print("XOR Training Demo")
    print("=" * 60)

    try:
        topology = parse_topology(args.topology)
        net = Network.build(topology, args.learning_rate, seed=args.seed)

        print(f"\n🧠 Network: {net.sizes}, learning rate {net.learning_rate}")
        print(f"🏋️  Training for {args.epochs} epochs...")

        initial_error = net.evaluate(XOR_PATTERNS)
        final_error = net.train(XOR_PATTERNS, args.epochs)

        print(f"✅ Error: {initial_error:.4f} → {final_error:.4f}\n")

        for pattern in XOR_PATTERNS:
            outputs = net.execute(pattern)
            print(
                f"   Input: {list(pattern.features)}, "
                f"Expected: {list(pattern.targets)}, "
                f"Output: {[round(value, 4) for value in outputs]}"
            )

    except NetworkError as e:
        print(f"\n❌ Error: {e}")
        return 1

    return 0


if __name__ == '__main__':
    sys.exit(main())
