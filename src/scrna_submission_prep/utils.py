import re
import subprocess
from typing import Any

import cpg_utils
from loguru import logger

_COMPLEMENT = str.maketrans('ACGTNacgtn', 'TGCANtgcan')


def reverse_complement(sequence: str) -> str:
    return sequence.translate(_COMPLEMENT)[::-1]


def validate_cli_path_input(path: str, arg_name: str) -> None:
    """
    Validates that a path string does not contain shell metacharacters
    to prevent potential injection vulnerabilities.
    """
    # Regex for common shell metacharacters and whitespace,
    # excluding GCS 'gs://' prefix, path slashes '/', and underscores '_'
    if re.search(r'[;&|$`(){}[\]<>*?!#\s]', path):
        logger.error(f'Invalid characters found in {arg_name}: {path}')
        raise ValueError(f'Potential unsafe characters in {arg_name}')
    logger.info(f'Path validation passed for {arg_name}.')


def run_subprocess_with_log(
    cmd: str | list[str],
    step_name: str,
) -> subprocess.CompletedProcess[Any]:
    """
    Runs a subprocess command with robust logging.
    Logs the command, its output, and errors if any occur.
    """
    cmd_str = cmd if isinstance(cmd, str) else ' '.join(cmd)
    logger.info(f'Running {step_name} command: {cmd_str}')
    try:
        process: subprocess.CompletedProcess[str] = subprocess.run(  # noqa: S603
            cmd,
            check=True,
            capture_output=True,
            text=True,
        )
        logger.info(f'{step_name} completed successfully.')
        if process.stdout:
            logger.info(f'{step_name} STDOUT:\n{process.stdout.strip()}')
        if process.stderr:
            logger.info(f'{step_name} STDERR:\n{process.stderr.strip()}')
        return process
    except subprocess.CalledProcessError as e:
        logger.error(f'{step_name} failed with return code {e.returncode}')
        logger.error(f'CMD: {cmd_str}')
        logger.error(f'STDOUT: {e.stdout}')
        logger.error(f'STDERR: {e.stderr}')
        raise


def copy_to_destination(local_path: cpg_utils.Path, destination: str) -> None:
    """Copies a staged local file to its storage destination, overwriting it."""
    validate_cli_path_input(str(local_path), 'local_path')
    validate_cli_path_input(destination, 'destination')
    run_subprocess_with_log(
        ['gcloud', 'storage', 'cp', str(local_path), destination],  # noqa: S607
        f'Copy {local_path.name}',
    )


def get_staging_path(staging_dir: str, filename: str) -> cpg_utils.Path:
    """Gets a path in the local staging directory, creating the directory if needed."""
    staging: cpg_utils.Path = cpg_utils.to_path(staging_dir)
    staging.mkdir(parents=True, exist_ok=True)
    return staging / filename
