"""Brand visibility analysis engine.

Pure steps composed by the run orchestrator:
  1. Query generator   (topic + brand -> 20 search prompts)
  2. Mention checker   (answer text -> mention, position bucket, context)
  3. Batch runner      (bounded-concurrency checks, persisted as they finish)
  4. Scorer            (per-query results -> 0-100 visibility score)
  5. Insight generator (run statistics -> recommendation strings)
"""
