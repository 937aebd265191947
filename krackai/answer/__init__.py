"""Answer generation: prompt assembly, retry policy and text-generation adapters."""
