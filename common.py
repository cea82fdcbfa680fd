'''
Helpers shared by the training script and the exploration policy
'''


def linear_decay(step, max_step, eps_start, eps_end):
    return max(eps_end, eps_start - (eps_start - eps_end) * (step / max_step))

def trimmed_mean(data, percentage=0.1):
    ''' return the trimmed mean of data by excluding first percentage and last percentage, total 2*percentage data '''
    if not data:
        raise ValueError("The data list is empty")

    if not 0 <= percentage < 0.5:
        raise ValueError("Percentage must be between 0 and 0.5")

    n = len(data)
    k = int(n * percentage)

    # Sort the data
    sorted_data = sorted(data)

    # Remove the lowest and highest k elements
    trimmed_data = sorted_data[k:n-k]

    return sum(trimmed_data) / len(trimmed_data)
