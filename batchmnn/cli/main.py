"""Command-line interface for BatchMNN.

Runs the correction kernels on matrices stored in files. All expression
matrices are read as genes x cells (use --transpose for cells x genes files;
.h5ad files are transposed automatically).
"""

import logging
from pathlib import Path
from typing import Any, Dict, Optional

import click
import numpy as np

SUFFIXES = {"npy": ".npy", "csv": ".csv"}


def setup_logging(verbose: bool = False, debug: bool = False) -> logging.Logger:
    """Setup logging for CLI commands."""
    level = logging.DEBUG if debug else (logging.INFO if verbose else logging.WARNING)
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(levelname)s - %(message)s",
        datefmt="%H:%M:%S",
    )
    return logging.getLogger("batchmnn")


def _load_config(config: Optional[str]):
    from batchmnn.core.correction import CorrectionConfig

    if config:
        return CorrectionConfig.from_yaml(Path(config))
    return CorrectionConfig()


def _override(section: Any, **values: Any) -> None:
    """Set config fields for options given on the command line."""
    for name, value in values.items():
        if value is not None:
            setattr(section, name, value)


def _finish(
    ctx: click.Context,
    out_dir: Path,
    command: str,
    params: Dict[str, Any],
    summary: Dict[str, Any],
) -> None:
    from batchmnn.io import log_json, log_yaml, run_record

    record = run_record(command, params, summary)
    log_json(out_dir / "run_log.jsonl", record)
    log_yaml(None, record, logger=ctx.obj["logger"])


class KernelCommand(click.Command):
    """Command that reports input and validation errors as usage failures."""

    def invoke(self, ctx: click.Context) -> Any:
        try:
            return super().invoke(ctx)
        except (ValueError, FileNotFoundError) as e:
            raise click.ClickException(str(e)) from e


@click.group()
@click.version_option(version="0.1.0", prog_name="batchmnn")
@click.option("-v", "--verbose", is_flag=True, help="Enable verbose output")
@click.option("--debug", is_flag=True, help="Enable debug output")
@click.option("--log-file", type=click.Path(), help="Also write logs to this file (timestamped)")
@click.pass_context
def cli(ctx: click.Context, verbose: bool, debug: bool, log_file: Optional[str]) -> None:
    """BatchMNN: kernels for mutual-nearest-neighbour batch correction.

    Examples:

        # Smooth pair correction vectors over a batch
        batchmnn smooth --vect vect.npy --index index.txt --data target.npy --out out/

        # Variance adjustment scaling factors
        batchmnn adjust-variance --ref ref.npy --target target.npy --vect smoothed.npy --out out/

        # Full two-batch correction from MNN pairs
        batchmnn correct --ref ref.npy --target target.npy --pairs pairs.csv --out out/
    """
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["debug"] = debug
    logger = setup_logging(verbose, debug)
    if log_file:
        from batchmnn.io import get_logger

        level = logging.DEBUG if debug else logging.INFO
        logger, actual_path = get_logger("batchmnn", log_file, level=level)
        ctx.obj["log_file"] = actual_path
    ctx.obj["logger"] = logger


@cli.command(cls=KernelCommand)
@click.option("--vect", required=True, type=click.Path(exists=True),
              help="Pair correction vectors (pairs x genes)")
@click.option("--index", "index_path", required=True, type=click.Path(exists=True),
              help="Anchor cell of each pair (one integer per line, or .npy)")
@click.option("--data", "data_path", required=True, type=click.Path(exists=True),
              help="Expression matrix used for distances (genes x cells)")
@click.option("--out", "-o", "output_path", required=True, type=click.Path(),
              help="Output directory")
@click.option("--config", "-c", type=click.Path(exists=True),
              help="Correction configuration file (YAML)")
@click.option("--sigma", type=float, help="Kernel bandwidth")
@click.option("--index-base", type=click.Choice(["0", "1"]), help="Numbering of --index")
@click.option("--n-jobs", type=int, help="Worker threads (-1 for all cores)")
@click.option("--chunk-size", type=int, help="Cells densified at a time")
@click.option("--transpose", is_flag=True, help="--data is stored cells x genes")
@click.option("--format", "out_format", type=click.Choice(["npy", "csv"]), default="npy",
              help="Output file format")
@click.pass_context
def smooth(
    ctx: click.Context,
    vect: str,
    index_path: str,
    data_path: str,
    output_path: str,
    config: Optional[str],
    sigma: Optional[float],
    index_base: Optional[str],
    n_jobs: Optional[int],
    chunk_size: Optional[int],
    transpose: bool,
    out_format: str,
) -> None:
    """Smooth MNN pair correction vectors with a Gaussian kernel.

    Writes a genes x cells matrix of smoothed correction vectors.
    """
    logger = ctx.obj["logger"]

    from batchmnn.core.correction import smooth_gaussian_kernel
    from batchmnn.io import ensure_output_dir, load_index, load_matrix, write_matrix

    cfg = _load_config(config).smoothing
    _override(
        cfg,
        sigma=sigma,
        index_base=int(index_base) if index_base is not None else None,
        n_jobs=n_jobs,
        chunk_size=chunk_size,
    )
    cfg.validate()

    out_dir = ensure_output_dir(output_path)
    logger.info(f"Loading pair vectors: {vect}")
    vectors = load_matrix(vect)
    index = load_index(index_path)
    logger.info(f"Loading expression matrix: {data_path}")
    data = load_matrix(data_path, transpose=transpose)

    smoothed = smooth_gaussian_kernel(
        vectors,
        index,
        data,
        cfg.sigma,
        index_base=cfg.index_base,
        n_jobs=cfg.n_jobs,
        chunk_size=cfg.chunk_size,
    )

    output_file = write_matrix(smoothed, out_dir / f"smoothed{SUFFIXES[out_format]}")
    n_undefined = int(np.isnan(smoothed).any(axis=0).sum())
    _finish(
        ctx,
        out_dir,
        "smooth",
        {"vect": vect, "index": index_path, "data": data_path, **vars(cfg)},
        {"n_pairs": int(len(index)), "shape": list(smoothed.shape), "n_undefined_cells": n_undefined},
    )

    click.echo(f"Smoothing complete: {smoothed.shape[0]} genes x {smoothed.shape[1]} cells")
    click.echo(f"Output saved to: {output_file}")


@cli.command(name="adjust-variance", cls=KernelCommand)
@click.option("--ref", "ref_path", required=True, type=click.Path(exists=True),
              help="Reference batch (genes x cells)")
@click.option("--target", "target_path", required=True, type=click.Path(exists=True),
              help="Batch being corrected (genes x cells)")
@click.option("--vect", required=True, type=click.Path(exists=True),
              help="Correction directions, genes x cells as written by 'smooth'")
@click.option("--out", "-o", "output_path", required=True, type=click.Path(),
              help="Output directory")
@click.option("--config", "-c", type=click.Path(exists=True),
              help="Correction configuration file (YAML)")
@click.option("--sigma", type=float, help="Kernel bandwidth")
@click.option("--n-jobs", type=int, help="Worker threads (-1 for all cores)")
@click.option("--chunk-size", type=int, help="Cells densified at a time")
@click.option("--transpose", is_flag=True, help="--ref/--target are stored cells x genes")
@click.option("--format", "out_format", type=click.Choice(["npy", "csv"]), default="npy",
              help="Output file format")
@click.pass_context
def adjust_variance(
    ctx: click.Context,
    ref_path: str,
    target_path: str,
    vect: str,
    output_path: str,
    config: Optional[str],
    sigma: Optional[float],
    n_jobs: Optional[int],
    chunk_size: Optional[int],
    transpose: bool,
    out_format: str,
) -> None:
    """Compute per-cell variance adjustment scaling factors.

    Writes one scaling factor per target cell (unclipped).
    """
    logger = ctx.obj["logger"]

    from batchmnn.core.correction import adjust_shift_variance
    from batchmnn.io import ensure_output_dir, load_matrix, write_matrix

    cfg = _load_config(config).variance
    _override(cfg, sigma=sigma, n_jobs=n_jobs, chunk_size=chunk_size)
    cfg.validate()

    out_dir = ensure_output_dir(output_path)
    logger.info(f"Loading batches: {ref_path}, {target_path}")
    ref = load_matrix(ref_path, transpose=transpose)
    target = load_matrix(target_path, transpose=transpose)
    directions = load_matrix(vect, transpose=True)

    scales = adjust_shift_variance(
        ref, target, directions, cfg.sigma, n_jobs=cfg.n_jobs, chunk_size=cfg.chunk_size
    )

    output_file = write_matrix(scales, out_dir / f"scales{SUFFIXES[out_format]}")
    n_undefined = int(np.isnan(scales).sum())
    _finish(
        ctx,
        out_dir,
        "adjust-variance",
        {"ref": ref_path, "target": target_path, "vect": vect, **vars(cfg)},
        {"n_cells": int(scales.size), "n_undefined_cells": n_undefined},
    )

    click.echo(f"Variance adjustment complete: {scales.size} cells")
    click.echo(f"Output saved to: {output_file}")


@cli.command(cls=KernelCommand)
@click.option("--ref", "ref_path", required=True, type=click.Path(exists=True),
              help="Reference batch (genes x cells)")
@click.option("--target", "target_path", required=True, type=click.Path(exists=True),
              help="Batch to correct (genes x cells)")
@click.option("--pairs", required=True, type=click.Path(exists=True),
              help="MNN pairs CSV with 'ref' and 'target' columns")
@click.option("--out", "-o", "output_path", required=True, type=click.Path(),
              help="Output directory")
@click.option("--config", "-c", type=click.Path(exists=True),
              help="Correction configuration file (YAML)")
@click.option("--sigma", type=float, help="Kernel bandwidth for both kernels")
@click.option("--var-adj/--no-var-adj", default=None, help="Apply variance adjustment")
@click.option("--cos-norm/--no-cos-norm", default=None, help="Cosine-normalize both batches")
@click.option("--transpose", is_flag=True, help="--ref/--target are stored cells x genes")
@click.option("--format", "out_format", type=click.Choice(["npy", "csv"]), default="npy",
              help="Output file format")
@click.pass_context
def correct(
    ctx: click.Context,
    ref_path: str,
    target_path: str,
    pairs: str,
    output_path: str,
    config: Optional[str],
    sigma: Optional[float],
    var_adj: Optional[bool],
    cos_norm: Optional[bool],
    transpose: bool,
    out_format: str,
) -> None:
    """Correct the target batch towards the reference using MNN pairs.

    Writes the corrected matrix, the applied correction and, with variance
    adjustment, the clipped scaling factors.
    """
    logger = ctx.obj["logger"]

    from batchmnn.core.correction import MNNCorrector
    from batchmnn.io import ensure_output_dir, load_matrix, load_pairs, write_matrix

    cfg = _load_config(config)
    _override(cfg.smoothing, sigma=sigma)
    _override(cfg.variance, sigma=sigma)
    _override(cfg, var_adj=var_adj, cos_norm=cos_norm)

    out_dir = ensure_output_dir(output_path)
    logger.info(f"Loading batches: {ref_path}, {target_path}")
    ref = load_matrix(ref_path, transpose=transpose)
    target = load_matrix(target_path, transpose=transpose)
    mnn_ref, mnn_target = load_pairs(pairs)
    logger.info(f"Loaded {len(mnn_ref)} MNN pairs")

    result = MNNCorrector(cfg).correct(ref, target, mnn_ref, mnn_target)

    suffix = SUFFIXES[out_format]
    output_file = write_matrix(result.corrected, out_dir / f"corrected{suffix}")
    write_matrix(result.correction, out_dir / f"correction{suffix}")
    if result.scales is not None:
        write_matrix(result.scales, out_dir / f"scales{suffix}")

    _finish(
        ctx,
        out_dir,
        "correct",
        {"ref": ref_path, "target": target_path, "pairs": pairs, **cfg.to_dict()},
        result.summary(),
    )

    click.echo(
        f"Correction complete: {result.n_pairs} pairs, {result.n_anchors} anchor cells"
    )
    click.echo(f"Output saved to: {output_file}")


def main() -> None:
    """Main entry point for CLI."""
    cli(obj={})


if __name__ == "__main__":
    main()
