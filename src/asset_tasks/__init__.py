"""Asset build tasks.

One module per kind of asset; each task is declared with
`@assetflow.task(name=...)` and wired into commands in `graphs.py`.
"""
