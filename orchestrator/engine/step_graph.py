"""
Step graph builder.

Turns each recipe's step groups into a per-recipe chain. Chains form a forest:
every step group has at most one predecessor and one successor, all within
its own recipe. The checks here are purely structural.
"""
from dataclasses import dataclass
from typing import Dict, Iterator, List, Optional, Tuple

from orchestrator.errors import MalformedRecipeError
from orchestrator.models.schemas import Recipe, StepGroup, StepRef

# (recipe_id, step_group_id)
StepKey = Tuple[str, str]


def _pin_offset(step: StepGroup) -> int:
    """Minutes before serving at which an exactly pinned step starts."""
    return (step.nights_before_serving or 0) * 24 * 60 + step.minutes_before_serving


@dataclass(frozen=True)
class ChainNode:
    """A step group positioned in its recipe chain."""

    recipe: Recipe
    step: StepGroup
    position: int  # index within the chain
    recipe_index: int  # index of the recipe in the request

    @property
    def key(self) -> StepKey:
        return (self.recipe.id, self.step.id)

    @property
    def order_key(self) -> Tuple[int, int]:
        """Stable input order used for deterministic tie-breaks."""
        return (self.recipe_index, self.position)

    @property
    def ref(self) -> StepRef:
        return StepRef(
            recipe_id=self.recipe.id,
            step_group_id=self.step.id,
            recipe_name=self.recipe.name,
            step_name=self.step.name,
        )


@dataclass(frozen=True)
class RecipeChain:
    """Ordered step groups of one recipe."""

    recipe: Recipe
    nodes: Tuple[ChainNode, ...]

    @property
    def final(self) -> ChainNode:
        return self.nodes[-1]

    def predecessor(self, node: ChainNode) -> Optional[ChainNode]:
        return self.nodes[node.position - 1] if node.position > 0 else None

    def successor(self, node: ChainNode) -> Optional[ChainNode]:
        index = node.position + 1
        return self.nodes[index] if index < len(self.nodes) else None

    def predecessors(self, node: ChainNode) -> List[ChainNode]:
        """All earlier nodes, nearest first."""
        return list(reversed(self.nodes[:node.position]))


class StepGraph:
    """The forest of recipe chains for one scheduling run."""

    def __init__(self, chains: List[RecipeChain]):
        self.chains = chains
        self._nodes: Dict[StepKey, ChainNode] = {}
        self._chain_by_recipe: Dict[str, RecipeChain] = {}
        for chain in chains:
            self._chain_by_recipe[chain.recipe.id] = chain
            for node in chain.nodes:
                self._nodes[node.key] = node

    def __iter__(self) -> Iterator[RecipeChain]:
        return iter(self.chains)

    def __len__(self) -> int:
        return len(self.chains)

    def node(self, key: StepKey) -> ChainNode:
        return self._nodes[key]

    def chain_for(self, recipe_id: str) -> RecipeChain:
        return self._chain_by_recipe[recipe_id]

    def nodes(self) -> List[ChainNode]:
        """All nodes in stable input order."""
        return [node for chain in self.chains for node in chain.nodes]


class StepGraphBuilder:
    """Build and structurally validate per-recipe step chains."""

    def build(self, recipes: List[Recipe]) -> StepGraph:
        """
        Build the step graph for a set of recipes.

        Args:
            recipes: Recipes in request order.

        Returns:
            StepGraph with one chain per recipe.

        Raises:
            MalformedRecipeError: If any recipe is structurally invalid. All
                problems across all recipes are reported together.
        """
        problems: List[str] = []
        chains: List[RecipeChain] = []

        seen_recipe_ids = set()
        for recipe_index, recipe in enumerate(recipes):
            if recipe.id in seen_recipe_ids:
                problems.append(f"DUPLICATE_RECIPE: recipe={recipe.id}")
                continue
            seen_recipe_ids.add(recipe.id)

            recipe_problems = self._validate_recipe(recipe)
            if recipe_problems:
                problems.extend(recipe_problems)
                continue

            ordered = self._ordered_steps(recipe)
            nodes = tuple(
                ChainNode(recipe=recipe, step=step, position=position, recipe_index=recipe_index)
                for position, step in enumerate(ordered)
            )
            chains.append(RecipeChain(recipe=recipe, nodes=nodes))

        if problems:
            raise MalformedRecipeError(problems)

        return StepGraph(chains)

    def _ordered_steps(self, recipe: Recipe) -> List[StepGroup]:
        indexed = [
            (step.sequence if step.sequence is not None else position, step)
            for position, step in enumerate(recipe.step_groups)
        ]
        # sort is stable, so equal indices never reach here (rejected as duplicates)
        return [step for _, step in sorted(indexed, key=lambda pair: pair[0])]

    def _validate_recipe(self, recipe: Recipe) -> List[str]:
        problems: List[str] = []

        if not recipe.step_groups:
            return [f"EMPTY_RECIPE: recipe={recipe.id} has no step groups"]

        step_ids = [step.id for step in recipe.step_groups]
        for step_id in sorted({s for s in step_ids if step_ids.count(s) > 1}):
            problems.append(f"DUPLICATE_STEP: recipe={recipe.id} step={step_id}")

        sequences = [
            step.sequence if step.sequence is not None else position
            for position, step in enumerate(recipe.step_groups)
        ]
        for sequence in sorted({s for s in sequences if sequences.count(s) > 1}):
            problems.append(f"DUPLICATE_SEQUENCE: recipe={recipe.id} sequence={sequence}")

        if problems:
            return problems

        ordered = self._ordered_steps(recipe)
        known = set(step_ids)
        for position, step in enumerate(ordered):
            if step.predecessor_id is None:
                continue
            if step.predecessor_id not in known:
                problems.append(
                    f"MISSING_PREDECESSOR: recipe={recipe.id} step={step.id} "
                    f"depends_on={step.predecessor_id} (not found)"
                )
            elif position == 0 or ordered[position - 1].id != step.predecessor_id:
                problems.append(
                    f"OUT_OF_ORDER_PREDECESSOR: recipe={recipe.id} step={step.id} "
                    f"depends_on={step.predecessor_id} (not the preceding step group)"
                )

        # Nights-before-serving must not increase along the chain
        last_pinned: Optional[StepGroup] = None
        for step in ordered:
            if step.nights_before_serving is None:
                continue
            if last_pinned is not None and step.nights_before_serving > last_pinned.nights_before_serving:
                problems.append(
                    f"NON_MONOTONIC_NIGHTS: recipe={recipe.id} step={step.id} "
                    f"({step.nights_before_serving} nights) follows step={last_pinned.id} "
                    f"({last_pinned.nights_before_serving} nights)"
                )
            last_pinned = step

        # Exact pins (minutes before serving, on their night) must also move toward meal time
        last_exact: Optional[StepGroup] = None
        for step in ordered:
            if step.minutes_before_serving is None:
                continue
            if last_exact is not None and _pin_offset(step) > _pin_offset(last_exact):
                problems.append(
                    f"NON_MONOTONIC_PIN: recipe={recipe.id} step={step.id} "
                    f"({_pin_offset(step)} min before serving) follows step={last_exact.id} "
                    f"({_pin_offset(last_exact)} min before serving)"
                )
            last_exact = step

        return problems
