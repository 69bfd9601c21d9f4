import typer
import os
import logging
from typing import Optional
from typing_extensions import Annotated

import numpy as np
from pydantic import ValidationError

from magint.config_loader import build_spin_model, load_model_config
from magint.intmatrix import intmatrix

app = typer.Typer(help="MagInt: interaction matrices of magnetic crystal models")

logger = logging.getLogger("magint")


@app.callback()
def configure(
    debug: Annotated[bool, typer.Option("--debug", help="Enable debug logging.")] = False,
):
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%H:%M:%S",
    )


@app.command()
def init(
    filename: Annotated[str, typer.Argument(help="Filename for the new config")] = "model.yaml"
):
    """
    Generate a template configuration file.
    """
    if os.path.exists(filename):
        typer.confirm(f"{filename} already exists. Overwrite?", abort=True)

    template = """
lattice:
  lattice_parameters:
    a: 4.0
    b: 4.0
    c: 6.0
atoms:
  - label: "Cu1"
    pos: [0, 0, 0]
  - label: "Cu2"
    pos: [0.5, 0.5, 0]
matrices:
  - label: "J1"
    value: 1.0
  - label: "D1"
    type: dm
    value: [0, 0, 0.1]
couplings:
  - atom1: "Cu1"
    atom2: "Cu2"
    dl: [0, 0, 0]
    idx: 1
    matrices:
      - matrix: "J1"
      - matrix: "D1"
nsym: 1
rdip: 0.0
single_ion:
  field: [0, 0, 0]
options:
  sortDM: false
    """.strip()

    with open(filename, "w") as f:
        f.write(template + "\n")
    typer.echo(f"Created template config: {filename}")


@app.command()
def validate(
    config_file: Annotated[str, typer.Argument(help="Path to the model YAML file")]
):
    """
    Validate a configuration file against the schema and build its spin model.
    """
    if not os.path.exists(config_file):
        typer.secho(f"Error: File {config_file} not found.", fg=typer.colors.RED)
        raise typer.Exit(code=1)

    try:
        build_spin_model(load_model_config(config_file))
        typer.secho(f"Success: {config_file} is valid.", fg=typer.colors.GREEN)
    except (ValueError, ValidationError) as e:
        typer.secho("Validation Failed:", fg=typer.colors.RED)
        typer.echo(str(e))
        raise typer.Exit(code=1)


def _parse_n_ext(text: str):
    parts = [p for p in text.replace("x", ",").split(",") if p.strip()]
    return tuple(int(p) for p in parts)


@app.command()
def run(
    config_file: Annotated[str, typer.Argument(help="Path to the model YAML file")],
    output: Annotated[Optional[str], typer.Option("--output", "-o", help="Output .npz file")] = None,
    fitmode: Annotated[
        Optional[bool], typer.Option("--fitmode/--no-fitmode", help="Only compute the 'all' and 'dip' tables.")
    ] = None,
    plotmode: Annotated[
        Optional[bool], typer.Option("--plotmode/--no-plotmode", help="Add plotting index rows to 'all'.")
    ] = None,
    sort_dm: Annotated[Optional[bool], typer.Option("--sort-dm/--no-sort-dm", help="Orient bonds consistently.")] = None,
    zero_c: Annotated[Optional[bool], typer.Option("--zero-c/--no-zero-c", help="Keep bonds with zero matrices.")] = None,
    extend: Annotated[
        Optional[bool], typer.Option("--extend/--no-extend", help="Replicate onto the magnetic supercell.")
    ] = None,
    conjugate: Annotated[
        Optional[bool], typer.Option("--conjugate/--no-conjugate", help="Add the reversed bonds.")
    ] = None,
    n_ext: Annotated[Optional[str], typer.Option("--n-ext", help="Supercell, e.g. 2,2,1")] = None,
):
    """
    Build the interaction matrices of a model and save them to a .npz file.
    """
    try:
        config = load_model_config(config_file)
        model = build_spin_model(config)

        # flags left unset keep the value from the file
        overrides = {
            name: flag
            for name, flag in [
                ("fitmode", fitmode),
                ("plotmode", plotmode),
                ("sort_dm", sort_dm),
                ("zero_c", zero_c),
                ("extend", extend),
                ("conjugate", conjugate),
            ]
            if flag is not None
        }
        if n_ext is not None:
            overrides["n_ext"] = _parse_n_ext(n_ext)

        result = intmatrix(model, config.options, **overrides)
    except (OSError, ValueError, ValidationError) as e:
        typer.secho(f"Calculation failed: {e}", fg=typer.colors.RED)
        raise typer.Exit(code=1)

    if output is None:
        output = os.path.splitext(config_file)[0] + "_intmatrix.npz"

    logger.info(f"Saving results to '{output}'...")
    try:
        np.savez_compressed(output, **result.as_arrays())
    except (IOError, OSError) as e:
        logger.error(f"Failed to save results to '{output}': {e}")
        typer.secho(f"File saving failed: {e}", fg=typer.colors.RED)
        raise typer.Exit(code=1)

    for name, count in result.counts().items():
        typer.echo(f"{name:>4}: {count} bonds")
    typer.secho(f"Saved interaction matrices to {output}", fg=typer.colors.GREEN)


# Entry point for setuptools
def main():
    app()


if __name__ == "__main__":
    app()
