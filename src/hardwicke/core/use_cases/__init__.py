from hardwicke.core.use_cases.convert import ConversionPipeline, OutputTarget

__all__ = ["ConversionPipeline", "OutputTarget"]
