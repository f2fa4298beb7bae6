"""
Tools package: upstream catalog client, ranking LLM, embedding providers.

Import submodules directly (polyscope.tools.polymarket_client, ...); nothing
is re-exported here so importing one tool never drags in the others' stacks.
"""
