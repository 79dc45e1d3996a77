"""
Genomes: the evolving part of a car's driver.

AngleGenome is a single turn angle, bred by averaging two parents.
NetworkGenome holds the weights of a small feed-forward net and is only ever
cloned from the best driver and mutated, never crossed.
"""

import io

import torch

from .errors import GenomeMismatchError
from .sensors import NETWORK_RAY_ANGLES

NETWORK_INPUTS = len(NETWORK_RAY_ANGLES)
HIDDEN_SIZE = NETWORK_INPUTS * 3
NETWORK_OUTPUTS = 6  # left, neutral, right | accelerate, neutral, decelerate
LEARNING_RATE = 0.0001
NET_MUTATION_SCALE = 0.1
NET_MUTATION_SHARE = 0.5
ANGLE_RANGE = 70.0


def torch_generator(rng):
    """Seeded torch generator drawn from the simulation's numpy generator."""
    g = torch.Generator()
    g.manual_seed(int(rng.integers(0, 2 ** 63 - 1)))
    return g


class NeuralNet:
    """Sigmoid MLP with one hidden layer, float64 on the CPU."""
    __slots__ = ['w1', 'b1', 'w2', 'b2', 'lr']

    def __init__(self, generator=None, inputs=NETWORK_INPUTS, hidden=HIDDEN_SIZE, outputs=NETWORK_OUTPUTS):
        def uniform(*shape):
            return torch.rand(*shape, generator=generator, dtype=torch.float64) * 2 - 1

        self.w1 = uniform(inputs, hidden)
        self.b1 = uniform(hidden)
        self.w2 = uniform(hidden, outputs)
        self.b2 = uniform(outputs)
        self.lr = LEARNING_RATE

    @property
    def topology(self):
        return (self.w1.shape[0], self.w1.shape[1], self.w2.shape[1])

    @torch.no_grad()
    def forward(self, x):
        if not isinstance(x, torch.Tensor):
            x = torch.tensor(x, dtype=torch.float64)
        h = torch.sigmoid(x @ self.w1 + self.b1)
        return torch.sigmoid(h @ self.w2 + self.b2)

    def state_dict(self):
        return {
            "topology": list(self.topology),
            "w1": self.w1, "b1": self.b1,
            "w2": self.w2, "b2": self.b2,
            "lr": self.lr,
        }

    @classmethod
    def from_state_dict(cls, state):
        new = cls.__new__(cls)
        inputs, hidden, outputs = state["topology"]
        new.w1, new.b1 = state["w1"].clone(), state["b1"].clone()
        new.w2, new.b2 = state["w2"].clone(), state["b2"].clone()
        if tuple(new.w1.shape) != (inputs, hidden) or tuple(new.w2.shape) != (hidden, outputs):
            raise ValueError(f"Weights do not match topology {inputs}-{hidden}-{outputs}")
        new.lr = float(state["lr"])
        return new

    def to_bytes(self):
        buf = io.BytesIO()
        torch.save(self.state_dict(), buf)
        return buf.getvalue()

    @classmethod
    def from_bytes(cls, data):
        return cls.from_state_dict(torch.load(io.BytesIO(data), weights_only=True))

    def copy(self):
        return NeuralNet.from_bytes(self.to_bytes())

    def mutated(self, generator, scale=NET_MUTATION_SCALE, share=NET_MUTATION_SHARE):
        """Clone, then add weight * U(-scale, scale) to a random `share` of all weights."""
        new = self.copy()
        with torch.no_grad():
            for w in (new.w1, new.b1, new.w2, new.b2):
                mask = torch.rand(w.shape, generator=generator, dtype=w.dtype) < share
                factor = (torch.rand(w.shape, generator=generator, dtype=w.dtype) * 2 - 1) * scale
                w += w * factor * mask
        return new


class Genome:
    kind = None

    def mix(self, other):
        raise GenomeMismatchError(f"mix() is not implemented for {type(self).__name__}")

    def copy(self):
        raise NotImplementedError


class AngleGenome(Genome):
    kind = "angle"

    def __init__(self, turn_angle):
        self.turn_angle = float(turn_angle)  # degrees

    def __repr__(self):
        return f"AngleGenome({self.turn_angle:.3f})"

    def mix(self, other):
        if not isinstance(other, AngleGenome):
            raise GenomeMismatchError(f"Can't mix AngleGenome with {type(other).__name__}")
        return AngleGenome((self.turn_angle + other.turn_angle) / 2)

    def mutate(self, rng, rate):
        factor = rng.uniform(-rate, rate)
        self.turn_angle = self.turn_angle + self.turn_angle * factor

    def copy(self):
        return AngleGenome(self.turn_angle)


class NetworkGenome(Genome):
    kind = "network"

    def __init__(self, net):
        self.net = net

    def __repr__(self):
        return "NetworkGenome(%d-%d-%d)" % self.net.topology

    def mutate(self, rng, rate=None):
        # networks always mutate by NET_MUTATION_SCALE
        self.net = self.net.mutated(torch_generator(rng))

    def copy(self):
        return NetworkGenome(self.net.copy())

    def outputs(self, inputs):
        return self.net.forward(inputs)


def random_angle_genome(rng):
    return AngleGenome(rng.uniform(-ANGLE_RANGE, ANGLE_RANGE))


def random_network_genome(rng):
    return NetworkGenome(NeuralNet(torch_generator(rng)))


def genome_kind(genomes):
    """The single variant shared by all genomes; mixed populations are an error."""
    kinds = {type(g) for g in genomes}
    if len(kinds) != 1:
        names = ", ".join(sorted(k.__name__ for k in kinds)) or "none"
        raise GenomeMismatchError(f"Population must hold exactly one genome variant, got: {names}")
    return kinds.pop()
