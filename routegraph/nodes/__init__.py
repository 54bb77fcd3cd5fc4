"""Graph nodes.  Each takes the current state and returns a partial update."""
from routegraph.nodes.ait_query import AITQueryNode, AITRenderNode
from routegraph.nodes.base import LLMNode, Node, Resolution
from routegraph.nodes.cve_query import CVEQueryNode
from routegraph.nodes.math_executor import MathExecutorNode
from routegraph.nodes.planner import PlannerNode
from routegraph.nodes.router import RouterNode
from routegraph.nodes.summarizer import SummarizerNode
from routegraph.nodes.temperature import TemperatureConverterNode

__all__ = [
    "Node", "LLMNode", "Resolution",
    "PlannerNode", "RouterNode", "MathExecutorNode", "TemperatureConverterNode",
    "SummarizerNode", "AITQueryNode", "AITRenderNode", "CVEQueryNode",
]
